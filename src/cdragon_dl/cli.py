"""命令行界面模块

使用 Rich 库提供美化的命令行体验
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from .client import CommunityDragonClient
from .config import get_config, override_config
from .exceptions import CdragonDlException
from .models import Config, DownloadProgress, DownloadSummary, ListedFile

PROG = "cdragon-dl"


class RichProgressHandler:
    """Rich进度处理器 - 以文件数为单位显示目录下载进度"""

    def __init__(self, console: Console):
        self.console = console
        self.progress: Optional[Progress] = None
        self.task_id = None

    def start_progress(self, description: str):
        """开始进度显示"""
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(description, total=None)

    def update_progress(self, progress_info: DownloadProgress):
        """更新进度，总数随遍历发现新文件而增长"""
        if self.progress and self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=progress_info.completed,
                total=progress_info.scheduled,
            )

    def stop_progress(self):
        """停止进度显示"""
        if self.progress:
            self.progress.stop()
            self.progress = None
            self.task_id = None


class CLIApplication:
    """命令行应用程序"""

    def __init__(self):
        self.console = Console()
        self.progress_handler = RichProgressHandler(self.console)

    def create_parser(self) -> argparse.ArgumentParser:
        """创建命令行参数解析器"""
        parser = argparse.ArgumentParser(
            prog=PROG,
            description="CommunityDragon 目录下载器",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
使用示例:
  cdragon-dl download https://raw.communitydragon.org/latest/game/data/images/
  cdragon-dl download --max-depth 1 -o images https://raw.communitydragon.org/latest/game/data/images/
  cdragon-dl download --exported latest https://raw.communitydragon.org/latest/game/data/images/
  cdragon-dl versions
  cdragon-dl list https://raw.communitydragon.org/json/latest/
  cdragon-dl search gwen --version latest
            """,
        )
        parser.add_argument("-v", "--verbose", action="store_true", help="显示调试日志")
        parser.add_argument("--timeout", type=int, help="请求超时时间(秒)，默认30")
        parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")

        subparsers = parser.add_subparsers(dest="command")

        download = subparsers.add_parser("download", help="下载目录")
        download.add_argument("url", help="以 '/' 结尾的目录URL")
        download.add_argument(
            "--exported",
            metavar="VERSION",
            help="使用该版本的 files.exported.txt 清单代替逐目录请求",
        )
        download.add_argument("-o", "--output", help="输出目录 (默认: out)")
        download.add_argument("-c", "--concurrency", type=int, help="最大并发下载数，默认20")
        download.add_argument("-r", "--retries", type=int, help="每个文件的最大尝试次数，默认3")
        download.add_argument("--max-depth", type=int, help="最大遍历深度，0表示不限制")
        download.add_argument(
            "--no-overwrite", action="store_true", help="不删除已存在的输出目录"
        )
        download.add_argument(
            "--no-skip", action="store_true", help="重新下载本地已存在的文件"
        )
        download.add_argument("--filter", help="只下载文件名包含该字符串的文件")

        subparsers.add_parser("versions", help="列出所有可用版本")

        listing = subparsers.add_parser("list", help="显示一个目录列表页")
        listing.add_argument("url", help="目录列表API的URL")

        search = subparsers.add_parser("search", help="在清单中搜索文件")
        search.add_argument("query", help="查询字符串，支持正则表达式")
        search.add_argument("--version", dest="patch_version", default="latest", help="版本，默认latest")

        return parser

    def setup_logging(self, verbose: bool) -> None:
        """把库日志输出到Rich控制台"""
        handler = RichHandler(console=self.console, show_path=False, markup=False)
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[handler],
            force=True,
        )

    def build_config(self, args) -> Config:
        """从命令行参数覆盖配置"""
        config = get_config()
        changes = {"timeout": args.timeout}
        if args.command == "download":
            changes.update(
                output_path=args.output,
                max_concurrent_downloads=args.concurrency,
                max_retries=args.retries,
                max_depth=args.max_depth,
                name_filter=args.filter,
            )
            if args.no_overwrite:
                changes["overwrite_output"] = False
            if args.no_skip:
                changes["skip_existing"] = False
        return override_config(config, **changes)

    def print_banner(self):
        """打印应用横幅"""
        banner = Text("CDRAGON-DL", style="bold blue")
        banner.append(" - CommunityDragon 目录下载器 v1.0.0", style="dim")
        self.console.print(Panel(banner, border_style="blue", padding=(1, 2)))

    def print_summary(self, summary: DownloadSummary):
        """打印下载结果汇总"""
        table = Table(title="📦 下载结果", show_header=False, border_style="dim")
        table.add_column("项目", style="bold cyan", width=12)
        table.add_column("数量", style="white")

        table.add_row("已下载", str(summary.downloaded))
        table.add_row("已存在", str(summary.skipped_existing))
        table.add_row("未通过过滤", str(summary.skipped_filter))
        table.add_row("不存在", str(summary.not_found))
        table.add_row("失败", str(summary.failed))

        self.console.print(table)

    def print_listing(self, files: List[ListedFile]):
        """打印目录列表"""
        table = Table(title="📂 目录列表", border_style="dim")
        table.add_column("名称", style="white")
        table.add_column("类型", style="cyan")
        table.add_column("大小", justify="right")
        table.add_column("修改时间", style="dim")

        for listed in files:
            raw = listed.raw
            size = "" if raw.size is None else str(raw.size)
            table.add_row(raw.name, raw.type.value, size, raw.mtime)

        self.console.print(table)

    def print_error(self, error: str):
        """打印错误信息"""
        error_text = Text(f"❌ 错误: {error}", style="bold red")
        self.console.print(Panel(error_text, border_style="red"))

    async def run_download(self, args, config: Config) -> int:
        """执行目录下载"""
        async with CommunityDragonClient(
            config=config, progress_callback=self.progress_handler.update_progress
        ) as client:
            exported_files = None
            if args.exported:
                self.console.print(f"📄 正在获取清单: {args.exported}")
                exported_files = await client.list_manifest(args.exported)

            self.console.print(f"🔍 正在下载: [link]{args.url}[/link]")
            self.progress_handler.start_progress("Downloading")
            try:
                summary = await client.download_directory(args.url, exported_files)
            finally:
                self.progress_handler.stop_progress()

        self.print_summary(summary)
        self.console.print(Panel(Text("✅ 下载完成!", style="bold green"), border_style="green"))
        return 0

    async def run_command(self, args, config: Config) -> int:
        """执行子命令"""
        try:
            if args.command == "download":
                return await self.run_download(args, config)

            async with CommunityDragonClient(config=config) as client:
                if args.command == "versions":
                    for version in await client.get_patch_versions():
                        self.console.print(version)
                elif args.command == "list":
                    self.print_listing(await client.list_directory(args.url))
                elif args.command == "search":
                    exported_files = await client.list_manifest(args.patch_version)
                    for url in client.search(args.query, exported_files):
                        self.console.print(url, highlight=False)

        except CdragonDlException as e:
            self.print_error(str(e))
            return 1
        except KeyboardInterrupt:
            self.console.print("\n🛑 用户取消下载")
            return 1

        return 0

    async def main(self, argv=None) -> int:
        """主入口函数"""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        self.setup_logging(args.verbose)
        if args.command == "download" and not args.verbose:
            self.print_banner()

        try:
            config = self.build_config(args)
        except CdragonDlException as e:
            self.print_error(str(e))
            return 1

        return await self.run_command(args, config)


def main(argv=None) -> int:
    """CLI入口点 - 同步包装器"""
    app = CLIApplication()

    try:
        return asyncio.run(app.main(argv))
    except KeyboardInterrupt:
        print("\n🛑 程序被用户中断")
        return 1


if __name__ == "__main__":
    sys.exit(main())
