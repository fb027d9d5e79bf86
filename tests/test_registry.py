"""RequestRegistry 单元测试"""

import pytest

from groupMonitor.registry import RequestRegistry

HOUR = 60 * 60


@pytest.fixture
def registry() -> RequestRegistry:
    return RequestRegistry()


class TestAddAndLookup:
    """测试登记与查找"""

    def test_add_returns_request(self, registry: RequestRegistry) -> None:
        """测试登记后可以按用户和 flag 查到"""
        request = registry.add(1001, 123, "我是学生", "flag-1", created_at=100.0)

        assert request.group_id == 1001
        assert request.user_id == 123
        assert request.comment == "我是学生"
        assert request.token == "flag-1"
        assert registry.find_by_user(1001, 123) == request
        assert registry.find_by_token("flag-1") == request
        assert registry.count(1001) == 1

    def test_find_by_user_missing(self, registry: RequestRegistry) -> None:
        """测试查找不存在的申请"""
        registry.add(1001, 123, "", "flag-1")

        assert registry.find_by_user(1001, 456) is None
        assert registry.find_by_user(2002, 123) is None

    def test_duplicate_pair_replaces_old(self, registry: RequestRegistry) -> None:
        """测试同一用户重复申请时替换旧申请，旧 flag 失效"""
        registry.add(1001, 123, "第一次", "flag-old", created_at=100.0)
        new = registry.add(1001, 123, "第二次", "flag-new", created_at=200.0)

        assert registry.count(1001) == 1
        assert registry.find_by_user(1001, 123) == new
        assert registry.find_by_token("flag-old") is None
        assert registry.find_by_token("flag-new") == new

    def test_same_user_in_different_groups(self, registry: RequestRegistry) -> None:
        """测试同一用户在不同群的申请互不影响"""
        registry.add(1001, 123, "", "flag-a")
        registry.add(2002, 123, "", "flag-b")

        assert registry.count() == 2
        assert sorted(registry.groups()) == [1001, 2002]


class TestFindLatest:
    """测试查找最近的申请"""

    def test_empty_group(self, registry: RequestRegistry) -> None:
        assert registry.find_latest(1001) is None

    def test_greatest_created_at(self, registry: RequestRegistry) -> None:
        """测试按申请时间取最新，而不是按登记顺序"""
        registry.add(1001, 1, "", "flag-1", created_at=300.0)
        registry.add(1001, 2, "", "flag-2", created_at=100.0)

        assert registry.find_latest(1001).user_id == 1

    def test_tie_goes_to_later_insert(self, registry: RequestRegistry) -> None:
        """测试时间相同时取后登记的"""
        registry.add(1001, 1, "", "flag-1", created_at=100.0)
        registry.add(1001, 2, "", "flag-2", created_at=100.0)

        assert registry.find_latest(1001).user_id == 2


class TestRemoval:
    """测试移除"""

    def test_drain_all_in_insert_order(self, registry: RequestRegistry) -> None:
        """测试取出全部申请保持登记顺序，且之后找不到最新申请"""
        registry.add(1001, 1, "", "flag-1", created_at=300.0)
        registry.add(1001, 2, "", "flag-2", created_at=100.0)
        registry.add(1001, 3, "", "flag-3", created_at=200.0)
        registry.add(2002, 4, "", "flag-4")

        drained = registry.drain_all(1001)

        assert [r.user_id for r in drained] == [1, 2, 3]
        assert registry.find_latest(1001) is None
        assert registry.find_by_token("flag-1") is None
        assert registry.count(2002) == 1

    def test_drain_all_empty(self, registry: RequestRegistry) -> None:
        assert registry.drain_all(1001) == []

    def test_remove_is_idempotent(self, registry: RequestRegistry) -> None:
        """测试重复移除不会出错"""
        registry.add(1001, 123, "", "flag-1")

        assert registry.remove(1001, 123) is not None
        assert registry.remove(1001, 123) is None
        assert registry.find_by_token("flag-1") is None
        assert registry.groups() == []

    def test_discard_ignores_superseded(self, registry: RequestRegistry) -> None:
        """测试旧申请被替换后，按旧申请移除不会误删新申请"""
        old = registry.add(1001, 123, "", "flag-old")
        new = registry.add(1001, 123, "", "flag-new")

        assert registry.discard(old) is False
        assert registry.find_by_user(1001, 123) == new
        assert registry.discard(new) is True
        assert registry.count() == 0


class TestSweep:
    """测试过期清理"""

    def test_sweep_expired(self, registry: RequestRegistry) -> None:
        """测试25小时前的申请被清理，1小时前的保留"""
        now = 1_000_000.0
        registry.add(1001, 1, "", "flag-old", created_at=now - 25 * HOUR)
        registry.add(1001, 2, "", "flag-new", created_at=now - 1 * HOUR)
        registry.add(2002, 3, "", "flag-other", created_at=now - 30 * HOUR)

        removed = registry.sweep_expired(now, 24 * HOUR)

        assert removed == 2
        assert registry.find_by_user(1001, 1) is None
        assert registry.find_by_user(1001, 2) is not None
        assert registry.find_by_token("flag-other") is None
        assert registry.groups() == [1001]

    def test_sweep_nothing(self, registry: RequestRegistry) -> None:
        assert registry.sweep_expired(100.0, 24 * HOUR) == 0


class TestPersistence:
    """测试导出与恢复"""

    def test_round_trip_rebuilds_indices(self, registry: RequestRegistry) -> None:
        """测试恢复后 flag 索引和用户索引都可用"""
        registry.add(1001, 1, "你好", "flag-1", created_at=100.0)
        registry.add(1001, 2, "", "flag-2", created_at=200.0)

        restored = RequestRegistry()
        assert restored.load_dict(registry.to_dict()) == 2

        assert restored.find_by_token("flag-2").user_id == 2
        assert restored.find_by_user(1001, 1).comment == "你好"
        assert restored.find_latest(1001).user_id == 2

    def test_load_legacy_keys(self, registry: RequestRegistry) -> None:
        """测试兼容旧版数据文件中的 userId 字段，并跳过损坏的记录"""
        data = {
            "1001": [
                {"userId": 123, "comment": "旧数据", "time": 100, "flag": "flag-1"},
                {"comment": "没有QQ号", "time": 100, "flag": "flag-2"},
            ]
        }

        assert registry.load_dict(data) == 1
        assert registry.find_by_user(1001, 123).token == "flag-1"

    def test_load_millisecond_time(self, registry: RequestRegistry) -> None:
        """测试旧版数据文件的毫秒时间戳换算成秒"""
        registry.load_dict({"1001": [{"userId": 1, "time": 1700000000000, "flag": "flag-1"}]})

        assert registry.find_by_token("flag-1").created_at == 1700000000.0

    def test_load_malformed_sections(self, registry: RequestRegistry) -> None:
        assert registry.load_dict([1, 2]) == 0
        assert registry.load_dict({"1001": {"user_id": 1}, "2002": [{"user_id": 2, "flag": "f"}]}) == 1
        assert registry.groups() == [2002]

    def test_pending_newest_first_with_limit(self, registry: RequestRegistry) -> None:
        for i in range(5):
            registry.add(1001, i, "", f"flag-{i}", created_at=100.0 + i)

        listed = registry.pending(1001, limit=3, newest_first=True)

        assert [r.user_id for r in listed] == [4, 3, 2]
