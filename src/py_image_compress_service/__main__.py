"""Entry point for python -m py_image_compress_service.

默认启动 HTTP 服务，`mcp` 子命令启动 MCP 服务器。
"""

import sys


def main() -> None:
    """主入口函数"""
    # 检查版本信息
    if len(sys.argv) > 1 and sys.argv[1] in ["--version", "-v"]:
        from . import __version__

        print(f"py-image-compress-service {__version__}")
        return

    from .config import get_config
    from .utils.logging_helpers import configure_logging

    config = get_config()
    configure_logging(config.logging)

    if len(sys.argv) > 1 and sys.argv[1] == "mcp":
        from .mcp_server import main as server_main

        server_main()
        return

    import uvicorn

    from .web.app import create_app

    uvicorn.run(
        create_app(),
        host=config.server.HOST,
        port=config.server.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
