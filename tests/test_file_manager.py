"""测试文件管理器"""

import asyncio
import shutil

import aiohttp
import pytest

from cdragon_dl.core.file_manager import TEMP_SUFFIX, FileManager
from cdragon_dl.exceptions import FileOperationError, PathSecurityError
from cdragon_dl.models import Config


async def chunks(*parts):
    for part in parts:
        yield part


async def failing_chunks():
    yield b"partial"
    raise ConnectionResetError("connection lost")


async def truncated_chunks():
    yield b"partial"
    raise aiohttp.ClientPayloadError("response payload is not completed")


def temp_files(directory):
    return sorted(p.name for p in directory.glob(f".*{TEMP_SUFFIX}"))


class TestOutputRoot:
    """测试输出目录的重建"""

    @pytest.mark.asyncio
    async def test_overwrite_removes_existing(self, config, output_dir):
        (output_dir / "stale").mkdir(parents=True)
        (output_dir / "stale" / "old.png").write_bytes(b"old")

        await FileManager(config).prepare_output_root()

        assert not output_dir.exists()

    @pytest.mark.asyncio
    async def test_keep_existing(self, output_dir):
        (output_dir / "keep").mkdir(parents=True)
        config = Config(output_path=str(output_dir), overwrite_output=False)

        await FileManager(config).prepare_output_root()

        assert (output_dir / "keep").exists()

    @pytest.mark.asyncio
    async def test_missing_root_is_fine(self, config, output_dir):
        await FileManager(config).prepare_output_root()
        assert not output_dir.exists()

    @pytest.mark.asyncio
    async def test_directory_in_use_only_warns(self, config, output_dir, monkeypatch, caplog):
        """测试目录被占用时只记录警告"""
        output_dir.mkdir()

        def busy(path):
            raise PermissionError("in use")

        monkeypatch.setattr(shutil, "rmtree", busy)
        await FileManager(config).prepare_output_root()

        assert output_dir.exists()
        assert "Directory is likely being used" in caplog.text

    @pytest.mark.asyncio
    async def test_other_errors_raised(self, config, output_dir, monkeypatch):
        output_dir.mkdir()

        def broken(path):
            raise OSError("disk failure")

        monkeypatch.setattr(shutil, "rmtree", broken)
        with pytest.raises(FileOperationError) as exc_info:
            await FileManager(config).prepare_output_root()

        assert exc_info.value.operation == "rmtree"


class TestPathSafety:
    """测试路径安全检查"""

    @pytest.mark.parametrize("name", ["", " ", ".", "..", "a/b", "..\\evil", "nul\x00"])
    def test_unsafe_names(self, config, name):
        with pytest.raises(PathSecurityError):
            FileManager(config).ensure_safe_name(name)

    @pytest.mark.parametrize("name", ["a.png", "my icons", "a#1.png", "..hidden", "v1.2"])
    def test_safe_names(self, config, name):
        assert FileManager(config).ensure_safe_name(name) == name

    def test_resolve_directory(self, config, output_dir):
        manager = FileManager(config)

        assert manager.resolve_directory([]) == output_dir
        assert manager.resolve_directory(["icons", "deep"]) == output_dir / "icons" / "deep"

        with pytest.raises(PathSecurityError):
            manager.resolve_directory(["icons", ".."])


class TestWriteStream:
    """测试流式写入"""

    @pytest.mark.asyncio
    async def test_write_and_replace(self, config, output_dir):
        manager = FileManager(config)
        target = output_dir / "a.png"
        await manager.create_directory(output_dir)
        target.write_bytes(b"old")

        written = await manager.write_stream(target, chunks(b"ab", b"cd"))

        assert written == 4
        assert target.read_bytes() == b"abcd"
        assert temp_files(output_dir) == []

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_file(self, config, output_dir):
        """测试中途失败时删除临时文件，目标文件保持原状"""
        manager = FileManager(config)
        target = output_dir / "a.png"
        await manager.create_directory(output_dir)
        target.write_bytes(b"old")

        with pytest.raises(FileOperationError):
            await manager.write_stream(target, failing_chunks())

        assert target.read_bytes() == b"old"
        assert temp_files(output_dir) == []

    @pytest.mark.asyncio
    async def test_network_error_passed_through(self, config, output_dir):
        """测试读取响应体失败时原样抛出，以便重试"""
        manager = FileManager(config)
        target = output_dir / "a.png"
        await manager.create_directory(output_dir)

        with pytest.raises(aiohttp.ClientPayloadError):
            await manager.write_stream(target, truncated_chunks())

        assert not target.exists()
        assert temp_files(output_dir) == []

    @pytest.mark.asyncio
    async def test_create_directory_idempotent(self, config, output_dir):
        manager = FileManager(config)
        nested = output_dir / "a" / "b"

        await manager.create_directory(nested)
        await manager.create_directory(nested)

        assert nested.is_dir()
        assert await manager.file_exists(nested) is False

    @pytest.mark.asyncio
    async def test_file_exists(self, config, output_dir):
        manager = FileManager(config)
        await manager.create_directory(output_dir)
        (output_dir / "a.png").write_bytes(b"x")

        assert await manager.file_exists(output_dir / "a.png") is True
        assert await manager.file_exists(output_dir / "b.png") is False

    @pytest.mark.asyncio
    async def test_sibling_with_part_suffix_survives(self, config, output_dir):
        """测试同目录下名为 data.bin.part 的真实文件不会被 data.bin 的写入覆盖或删除"""
        manager = FileManager(config)
        await manager.create_directory(output_dir)

        await manager.write_stream(output_dir / "data.bin.part", chunks(b"REAL-PART-FILE"))
        await manager.write_stream(output_dir / "data.bin", chunks(b"main"))

        assert (output_dir / "data.bin.part").read_bytes() == b"REAL-PART-FILE"
        assert (output_dir / "data.bin").read_bytes() == b"main"
        assert temp_files(output_dir) == []

    @pytest.mark.asyncio
    async def test_concurrent_writes_use_distinct_temp_files(self, config, output_dir):
        """测试同一目标的并发写入各自使用独立的临时文件"""
        manager = FileManager(config)
        await manager.create_directory(output_dir)
        target = output_dir / "a.png"
        release = asyncio.Event()
        seen = []

        async def gated(part):
            seen.append(temp_files(output_dir))
            await release.wait()
            yield part

        first = asyncio.create_task(manager.write_stream(target, gated(b"one")))
        second = asyncio.create_task(manager.write_stream(target, gated(b"two")))
        while len(seen) < 2:
            await asyncio.sleep(0)

        assert len(temp_files(output_dir)) == 2
        release.set()
        await asyncio.gather(first, second)

        assert target.read_bytes() in (b"one", b"two")
        assert temp_files(output_dir) == []

    @pytest.mark.asyncio
    async def test_cancel_removes_temp_file(self, config, output_dir):
        """测试写入过程中被取消时删除临时文件"""
        manager = FileManager(config)
        target = output_dir / "a.png"
        await manager.create_directory(output_dir)
        started = asyncio.Event()

        async def stalled():
            yield b"partial"
            started.set()
            await asyncio.Event().wait()
            yield b"never"

        write = asyncio.create_task(manager.write_stream(target, stalled()))
        await started.wait()
        assert len(temp_files(output_dir)) == 1

        write.cancel()
        with pytest.raises(asyncio.CancelledError):
            await write

        assert not target.exists()
        assert temp_files(output_dir) == []
