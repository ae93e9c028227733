"""文件管理器模块

负责本地文件操作：输出目录的重建、目录创建、存在性检查、
以及以临时文件 + 原子替换的方式写入下载内容。
"""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncIterator, Iterable

import aiofiles
import aiofiles.os
import aiohttp

from ..exceptions import FileOperationError, PathSecurityError
from ..models import Config

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


class FileManager:
    """文件管理器

    并发的下载任务各自写入互不相同的文件路径，因此写入无需加锁；
    目录创建是幂等的，可以被多个任务同时调用。
    """

    def __init__(self, config: Config):
        """初始化文件管理器

        Args:
            config: 配置对象
        """
        self.config = config

    @property
    def output_root(self) -> Path:
        return Path(self.config.output_path)

    async def prepare_output_root(self) -> None:
        """根据覆盖策略删除已存在的输出目录

        目录被占用时只记录警告并继续；其他错误向上抛出。

        Raises:
            FileOperationError: 删除失败时
        """
        root = self.output_root
        if not self.config.overwrite_output or not await aiofiles.os.path.exists(root):
            return

        try:
            await asyncio.to_thread(shutil.rmtree, root)
        except PermissionError as e:
            logger.warning("Directory is likely being used: %s (%s)", root, e)
        except OSError as e:
            logger.error("Failed to overwrite directory: %s", root)
            raise FileOperationError(
                f"Failed to overwrite directory: {e}",
                file_path=str(root),
                operation="rmtree",
            ) from e

    def resolve_directory(self, segments: Iterable[str]) -> Path:
        """将远程目录段拼接到输出目录下

        Raises:
            PathSecurityError: 某个目录段会逃离输出目录时
        """
        path = self.output_root
        for segment in segments:
            path = path / self.ensure_safe_name(segment)
        return path

    def ensure_safe_name(self, name: str) -> str:
        """确保远程名称只是一个普通的路径段

        Raises:
            PathSecurityError: 名称为空、为 '.'/'..' 或包含路径分隔符时
        """
        if not name or name.strip() == "" or name in (".", ".."):
            raise PathSecurityError("Empty or invalid name", path=name)

        for pattern in ("/", "\\", "\x00"):
            if pattern in name:
                raise PathSecurityError(
                    f"Dangerous pattern {pattern!r} found in name", path=name
                )
        return name

    async def file_exists(self, file_path: Path) -> bool:
        """检查文件是否存在"""
        return await aiofiles.os.path.isfile(file_path)

    async def create_directory(self, dir_path: Path) -> None:
        """创建目录（幂等）

        Raises:
            FileOperationError: 目录创建失败时
        """
        try:
            await aiofiles.os.makedirs(dir_path, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                f"Directory creation failed: {e}",
                file_path=str(dir_path),
                operation="mkdir",
            ) from e

    async def _create_temp_file(self, file_path: Path) -> Path:
        """在目标目录下创建唯一的临时文件

        临时文件以独占方式创建，不会覆盖任何已存在的文件，
        包括远程目录中恰好同名的文件。
        """
        fd, temp_name = await asyncio.to_thread(
            tempfile.mkstemp,
            dir=file_path.parent,
            prefix=f".{file_path.name}.",
            suffix=TEMP_SUFFIX,
        )
        os.close(fd)
        return Path(temp_name)

    async def write_stream(self, file_path: Path, chunks: AsyncIterator[bytes]) -> int:
        """将字节流写入文件，写完后原子替换目标文件

        中途失败或被取消时删除临时文件，目标文件保持原状。

        Returns:
            写入的字节数

        Raises:
            FileOperationError: 写入失败时
        """
        try:
            temp_path = await self._create_temp_file(file_path)
        except OSError as e:
            raise FileOperationError(
                f"Temporary file creation failed: {e}",
                file_path=str(file_path),
                operation="mkstemp",
            ) from e

        written = 0
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    written += len(chunk)
            await aiofiles.os.replace(temp_path, file_path)
        except (asyncio.TimeoutError, aiohttp.ClientError):
            # 读取响应体失败，由调用方决定是否重试
            temp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise FileOperationError(
                f"File write failed: {e}",
                file_path=str(file_path),
                operation="write",
            ) from e
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        return written
