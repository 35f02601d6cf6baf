#!/usr/bin/env python
"""Step 3: 指纹索引 - 单元测试"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from newsdigest.models import NewsItem
from newsdigest.dedup import (
    DedupConfig,
    DedupOptions,
    FingerprintIndex,
    FingerprintMismatchError,
    backup_index,
    cleanup_index,
    filter_unseen,
    load_index,
    md5_fingerprint,
    run_dedup,
    save_index,
    simhash,
    update_index,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

STORY = "Storm systems move across the northern plains tonight"


def _item(title, url, content=""):
    return NewsItem(title=title, url=url, content=content)


class TestLoadIndex:
    """测试读取索引 (容错)"""

    def test_missing_file(self, tmp_path):
        """文件不存在 -> 空索引"""
        index = load_index(tmp_path / "absent.json")
        assert index.items == {}
        assert index.count == 0

    def test_corrupt_json(self, tmp_path):
        """JSON 损坏 -> 空索引"""
        path = tmp_path / "index.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_index(path).items == {}

    def test_empty_file(self, tmp_path):
        """空文件 -> 空索引"""
        path = tmp_path / "index.json"
        path.write_text("", encoding="utf-8")
        assert load_index(path).items == {}

    def test_invalid_structure(self, tmp_path):
        """结构不符 -> 空索引"""
        path = tmp_path / "index.json"
        path.write_text(json.dumps({"items": "nope"}), encoding="utf-8")
        assert load_index(path).items == {}

        path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        assert load_index(path).items == {}


class TestSaveIndex:
    """测试写入索引"""

    def test_roundtrip(self, tmp_path):
        """保存后可读回"""
        path = tmp_path / "data" / "dedup-index.json"
        index = update_index(FingerprintIndex(), [_item("Story", "https://x/1", STORY)], now=NOW)
        save_index(index, path)

        loaded = load_index(path)
        assert loaded.count == 1
        entry = loaded.items["https://x/1"]
        assert entry.title == "Story"
        assert entry.content_hash == md5_fingerprint(STORY)
        assert entry.content_fingerprint == simhash(STORY)
        assert entry.added_at == NOW
        assert loaded.last_updated == NOW

    def test_file_layout(self, tmp_path):
        """磁盘格式: items / last_updated / count"""
        path = tmp_path / "index.json"
        save_index(update_index(FingerprintIndex(), [_item("Story", "u", STORY)], now=NOW), path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"items", "last_updated", "count"}
        assert set(data["items"]["u"]) == {"title", "content_hash", "content_fingerprint", "added_at"}

    def test_no_temp_files_left(self, tmp_path):
        """原子写入不留临时文件"""
        path = tmp_path / "index.json"
        save_index(FingerprintIndex(), path)
        save_index(FingerprintIndex(), path)
        assert [p.name for p in tmp_path.iterdir()] == ["index.json"]

    def test_write_failure_raises(self, tmp_path):
        """写入失败必须抛出"""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        with pytest.raises(OSError):
            save_index(FingerprintIndex(), blocker / "index.json")


class TestUpdateIndex:
    """测试更新索引"""

    def test_skips_items_without_url(self):
        """无 url 的条目不入索引"""
        index = update_index(FingerprintIndex(), [_item("A", ""), _item("B", "b")], now=NOW)
        assert list(index.items) == ["b"]
        assert index.count == 1

    def test_upsert_by_url(self):
        """同 url 覆盖旧记录"""
        index = update_index(FingerprintIndex(), [_item("Old", "u", "old body")], now=NOW)
        later = NOW + timedelta(hours=1)
        update_index(index, [_item("New", "u", "new body")], now=later)
        assert index.count == 1
        assert index.items["u"].title == "New"
        assert index.items["u"].added_at == later

    def test_description_fallback(self):
        """content 为空时对 description 计算指纹"""
        item = NewsItem(title="T", url="u", description="only description")
        index = update_index(FingerprintIndex(), [item], now=NOW)
        assert index.items["u"].content_hash == md5_fingerprint("only description")

    def test_hash_bits(self):
        """指纹位数可配置"""
        index = update_index(FingerprintIndex(), [_item("T", "u", STORY)], hash_bits=32, now=NOW)
        assert len(index.items["u"].content_fingerprint) == 32


class TestCleanupIndex:
    """测试过期清理"""

    def test_removes_old_entries(self):
        """超过保留天数的记录被删除"""
        index = update_index(FingerprintIndex(), [_item("Old", "old")], now=NOW - timedelta(days=8))
        update_index(index, [_item("Fresh", "fresh")], now=NOW - timedelta(days=1))

        cleanup_index(index, max_age_days=7, now=NOW)
        assert list(index.items) == ["fresh"]
        assert index.count == 1

    def test_naive_timestamps(self):
        """无时区时间按 UTC 比较"""
        index = update_index(FingerprintIndex(), [_item("Old", "old")], now=datetime(2025, 5, 1))
        cleanup_index(index, max_age_days=7, now=NOW)
        assert index.items == {}


class TestBackupIndex:
    """测试备份"""

    def test_copies_existing_index(self, tmp_path):
        """备份文件内容一致"""
        path = tmp_path / "index.json"
        save_index(update_index(FingerprintIndex(), [_item("T", "u", STORY)], now=NOW), path)

        backup = backup_index(path)
        assert backup == tmp_path / "index.json.backup"
        assert backup.read_text(encoding="utf-8") == path.read_text(encoding="utf-8")

    def test_missing_index(self, tmp_path):
        """无索引时不备份"""
        assert backup_index(tmp_path / "index.json") is None


class TestFilterUnseen:
    """测试跨运行过滤"""

    def _index(self):
        return update_index(FingerprintIndex(), [_item("Storm report", "https://x/storm", STORY)], now=NOW)

    def test_seen_by_url(self):
        """url 已存在"""
        new, seen = filter_unseen([_item("Anything", "https://x/storm")], self._index())
        assert new == []
        assert len(seen) == 1

    def test_seen_by_content_hash(self):
        """内容 MD5 已存在"""
        item = _item("Different title", "https://y/other", "  " + STORY + "  ")
        new, seen = filter_unseen([item], self._index())
        assert seen == [item]

    def test_seen_by_simhash(self):
        """内容 simhash 接近"""
        reordered = " ".join(reversed(STORY.split()))
        item = _item("Different title", "https://y/other", reordered)
        new, seen = filter_unseen([item], self._index())
        assert seen == [item]

    def test_new_items_pass(self):
        """新条目保留, 顺序不变"""
        items = [
            _item("Quantum breakthrough", "q", "Quantum computers factor large integers using superposition"),
            _item("No body", "n"),
            _item("Harvest season begins", "h", "Farmers harvest wheat early because autumn rains arrived"),
        ]
        new, seen = filter_unseen(items, self._index())
        assert [i.url for i in new] == ["q", "n", "h"]
        assert seen == []

    def test_empty_bodies_not_matched(self):
        """索引中无内容的记录不参与内容匹配"""
        index = update_index(FingerprintIndex(), [_item("Title only", "t")], now=NOW)
        new, _ = filter_unseen([_item("Other", "o", STORY)], index)
        assert len(new) == 1

    def test_hash_width_mismatch(self):
        """索引位数与配置不一致时报错"""
        item = _item("Different title", "https://y/other", "completely new body text")
        with pytest.raises(FingerprintMismatchError):
            filter_unseen([item], self._index(), DedupOptions(hash_bits=32))


class TestRunDedup:
    """测试完整 Step 3 流程"""

    def test_index_persisted_and_reused(self, tmp_path):
        """第一次写入索引, 第二次跨运行过滤"""
        config = DedupConfig(index_path=tmp_path / "index.json")
        items = [
            _item("Storm report", "a", STORY),
            _item("Storm report", "b", STORY),
            _item("Quantum breakthrough", "c", "Quantum computers factor large integers using superposition"),
        ]

        outcome, seen = run_dedup(items, config, now=NOW)
        assert outcome.stats.unique_items == 2
        assert seen == []
        assert load_index(config.index_path).count == 2

        fresh = _item("Harvest season begins", "d", "Farmers harvest wheat early because autumn rains arrived")
        outcome, seen = run_dedup(items + [fresh], config, cross_run=True, now=NOW + timedelta(days=1))
        assert [i.url for i in outcome.unique_items] == ["d"]
        assert {i.url for i in seen} == {"a", "b", "c"}
        assert load_index(config.index_path).count == 3

    def test_expired_entries_dropped(self, tmp_path):
        """过期记录在加载时清理"""
        config = DedupConfig(index_path=tmp_path / "index.json", index_max_age_days=7)
        run_dedup([_item("Storm report", "a", STORY)], config, now=NOW)

        outcome, seen = run_dedup(
            [_item("Storm report", "a", STORY)], config, cross_run=True, now=NOW + timedelta(days=10)
        )
        assert seen == []
        assert outcome.stats.unique_items == 1

    def test_index_disabled(self, tmp_path):
        """关闭索引时不读写文件"""
        config = DedupConfig(index_enabled=False, index_path=tmp_path / "index.json")
        run_dedup([_item("Storm report", "a", STORY)], config, cross_run=True, now=NOW)
        assert not config.index_path.exists()

    def test_save_false(self, tmp_path):
        """save=False 不写索引"""
        config = DedupConfig(index_path=tmp_path / "index.json")
        run_dedup([_item("Storm report", "a", STORY)], config, save=False, now=NOW)
        assert not config.index_path.exists()
