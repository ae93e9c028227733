"""pytest配置文件

提供一个内存中的 CommunityDragon 远程目录树，并把它的目录列表、清单和文件
注册到 aioresponses 上。
"""

import urllib.parse
from typing import Dict, List, Set

import pytest

from cdragon_dl.models import Config

ROOT = "https://raw.communitydragon.org"
MTIME = "Mon, 01 Jan 2024 00:00:00 GMT"
IMAGES_URL = f"{ROOT}/latest/game/data/images/"


class RemoteTree:
    """模拟的远程目录树（单个版本）"""

    def __init__(self, version: str = "latest"):
        self.version = version
        self.files: Dict[str, bytes] = {}
        self.others: Set[str] = set()
        self.empty_dirs: Set[str] = set()

    def add_file(self, path: str, content: bytes = None) -> "RemoteTree":
        self.files[path] = content if content is not None else path.encode()
        return self

    def add_other(self, path: str) -> "RemoteTree":
        self.others.add(path)
        return self

    def add_directory(self, path: str) -> "RemoteTree":
        self.empty_dirs.add(path.strip("/"))
        return self

    def directories(self) -> Set[str]:
        """所有目录（不含版本根目录），形如 'game/data'"""
        dirs = set(self.empty_dirs)
        for path in list(self.files) + list(self.others) + list(self.empty_dirs):
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        return dirs

    def listing(self, directory: str) -> List[dict]:
        """某个目录的直接子条目，按名称排序"""
        prefix = f"{directory}/" if directory else ""
        entries: Dict[str, dict] = {}

        for d in self.directories():
            if d.startswith(prefix) and "/" not in d[len(prefix):] and d != directory:
                name = d[len(prefix):]
                entries[name] = {"name": name, "type": "directory", "mtime": MTIME}

        for path, content in self.files.items():
            rest = path[len(prefix):]
            if path.startswith(prefix) and "/" not in rest:
                entries[rest] = {
                    "name": rest,
                    "type": "file",
                    "mtime": MTIME,
                    "size": len(content),
                }

        for path in self.others:
            rest = path[len(prefix):]
            if path.startswith(prefix) and "/" not in rest:
                entries[rest] = {"name": rest, "type": "symlink", "mtime": MTIME}

        return [entries[name] for name in sorted(entries)]

    def listing_url(self, directory: str) -> str:
        directory = f"{directory}/" if directory else ""
        return f"{ROOT}/json/{self.version}/{urllib.parse.quote(directory)}"

    def file_url(self, path: str) -> str:
        return f"{ROOT}/{self.version}/{urllib.parse.quote(path)}"

    def listed_file_url(self, path: str) -> str:
        """实时遍历时文件从目录列表路径下载"""
        return f"{ROOT}/json/{self.version}/{urllib.parse.quote(path)}"

    def manifest_text(self) -> str:
        return "\n".join(self.files) + "\n"

    def mock(self, m, versions=None) -> None:
        """把整棵树注册到 aioresponses 上，所有响应可重复使用"""
        versions = versions or [self.version, "pbe"]
        root_entries = [{"name": v, "type": "directory", "mtime": MTIME} for v in versions]
        root_entries += [
            {"name": "status.live.txt", "type": "file", "mtime": MTIME, "size": 4},
            {"name": "runeterra", "type": "directory", "mtime": MTIME},
        ]
        m.get(f"{ROOT}/json/", payload=root_entries, repeat=True)
        m.get(
            f"{ROOT}/{self.version}/cdragon/files.exported.txt",
            body=self.manifest_text(),
            repeat=True,
        )

        m.get(self.listing_url(""), payload=self.listing(""), repeat=True)
        for directory in self.directories():
            m.get(self.listing_url(directory), payload=self.listing(directory), repeat=True)

        for path, content in self.files.items():
            m.get(self.file_url(path), body=content, repeat=True)
            m.get(self.listed_file_url(path), body=content, repeat=True)


@pytest.fixture
def remote_tree() -> RemoteTree:
    """标准测试树

    images/ 下有 a.png、一个 'other' 条目、icons/b.png 与 icons/deep/c.png；
    images 之外还有若干文件，用于验证子树过滤。
    """
    tree = RemoteTree()
    tree.add_file("game/data/images/a.png", b"image-a")
    tree.add_file("game/data/images/icons/b.png", b"image-b")
    tree.add_file("game/data/images/icons/deep/c.png", b"image-c")
    tree.add_file("game/data/images_old/x.png", b"old")
    tree.add_file("game/data/other.txt", b"other")
    tree.add_file("system.yaml", b"system")
    tree.add_other("game/data/images/broken")
    return tree


@pytest.fixture
def output_dir(tmp_path):
    """临时输出目录"""
    return tmp_path / "out"


@pytest.fixture
def config(output_dir) -> Config:
    """测试配置 - 无重试延迟"""
    return Config(output_path=str(output_dir), retry_delay=0.0)


def local_files(root) -> Dict[str, bytes]:
    """输出目录下所有文件的相对路径与内容"""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def read_tree():
    return local_files


@pytest.fixture
def tree_factory():
    """自定义远程目录树"""
    return RemoteTree
