import argparse
import json
import logging
import sys

import utils.others as otherutils
from core.cache import FILTER_ALL, FILTER_DRAFTS, FILTER_PUBLISHED
from core.reorder import ReorderCoordinator
from core.sync_engine import SyncEngine
from utils.api import ApiError
from utils.config import load_config
from utils.status_monitor import create_status_monitor

logger = logging.getLogger("blogsync")

FILTER_CHOICES = [FILTER_ALL, FILTER_DRAFTS, FILTER_PUBLISHED]


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _blog_fields(args) -> dict:
    fields = {}
    if args.title is not None:
        fields["title"] = args.title
    if args.content is not None:
        fields["content"] = args.content
    if args.images:
        fields["images"] = list(args.images)
    if args.draft is not None:
        fields["isDraft"] = args.draft
    return fields


def cmd_list(engine: SyncEngine, args) -> int:
    coordinator = ReorderCoordinator(engine, args.filter)
    blogs = coordinator.load()
    _emit({"source": engine.last_read_source, "blogs": [b.to_dict() for b in blogs]})
    return 0


def cmd_show(engine: SyncEngine, args) -> int:
    blog = engine.fetch_blog(args.id)
    if blog is None:
        logger.error("Blog %s not found on the server or in the cache.", args.id)
        _emit({"source": engine.last_read_source, "blog": None})
        return 1
    _emit({"source": engine.last_read_source, "blog": blog.to_dict()})
    return 0


def cmd_create(engine: SyncEngine, args) -> int:
    result = engine.save(_blog_fields(args))
    _emit({"queued": result.queued, "blog": result.blog.to_dict()})
    return 0


def cmd_update(engine: SyncEngine, args) -> int:
    result = engine.save(_blog_fields(args), blog_id=args.id)
    _emit({"queued": result.queued, "blog": result.blog.to_dict()})
    return 0


def cmd_delete(engine: SyncEngine, args) -> int:
    result = engine.delete(args.id)
    _emit({"queued": result.queued, "id": result.id, "message": result.message})
    return 0


def cmd_publish(engine: SyncEngine, args) -> int:
    result = engine.publish(args.id)
    _emit({"queued": result.queued, "blog": result.blog.to_dict()})
    return 0


def cmd_reorder(engine: SyncEngine, args) -> int:
    coordinator = ReorderCoordinator(engine, args.filter)
    coordinator.load()
    result = coordinator.reorder(args.source, args.destination)
    _emit(
        {
            "status": result.status,
            "error": result.error,
            "updates": [u.to_dict() for u in result.updates],
            "blogs": [b.to_dict() for b in result.blogs],
        }
    )
    return 1 if result.error else 0


def cmd_upload(engine: SyncEngine, args) -> int:
    _emit(engine.upload_image(args.path))
    return 0


def cmd_sync(engine: SyncEngine, args) -> int:
    result = engine.sync_queued_operations()
    _emit(result.as_dict())
    return 0 if not result.failed else 1


def cmd_status(engine: SyncEngine, args) -> int:
    _emit(engine.status())
    return 0


COMMANDS = {
    "list": cmd_list,
    "show": cmd_show,
    "create": cmd_create,
    "update": cmd_update,
    "delete": cmd_delete,
    "publish": cmd_publish,
    "reorder": cmd_reorder,
    "upload": cmd_upload,
    "sync": cmd_sync,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    # fmt: off
    parser = argparse.ArgumentParser(description="Offline-first command line client for the blog API.")
    parser.add_argument("--config", type=str, default="config/config.yaml", help="Path to the configuration file (default: config/config.yaml).")
    parser.add_argument("--console", action="store_true", help="Write logs to console instead of a file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--offline", action="store_true", help="Start in offline mode (queue writes, read from cache).")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List blogs (remote first, cache fallback).")
    p.add_argument("--filter", choices=FILTER_CHOICES, default=FILTER_ALL)

    p = sub.add_parser("show", help="Show a single blog.")
    p.add_argument("id")

    for name in ("create", "update"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a blog.")
        if name == "update":
            p.add_argument("id")
        p.add_argument("--title", type=str, default=None)
        p.add_argument("--content", type=str, default=None)
        p.add_argument("--image", dest="images", action="append", default=None, help="Image path/URL (repeatable).")
        p.add_argument("--draft", dest="draft", action="store_true", default=None, help="Mark as draft.")
        p.add_argument("--published", dest="draft", action="store_false", default=None, help="Mark as published.")

    p = sub.add_parser("delete", help="Delete a blog.")
    p.add_argument("id")

    p = sub.add_parser("publish", help="Publish a draft.")
    p.add_argument("id")

    p = sub.add_parser("reorder", help="Move the post at SOURCE to DESTINATION and renumber.")
    p.add_argument("source", type=int)
    p.add_argument("destination", type=int)
    p.add_argument("--filter", choices=FILTER_CHOICES, default=FILTER_ALL)

    p = sub.add_parser("upload", help="Upload an image (online only).")
    p.add_argument("path")

    sub.add_parser("sync", help="Replay queued offline operations.")
    sub.add_parser("status", help="Show connectivity, queue and cache status.")
    # fmt: on
    return parser


def main(argv=None) -> int:
    """
    Entry point for the blogsync command line client.

    Parses arguments, loads configuration, sets up logging and the status
    monitor, builds the SyncEngine and runs a single command against it.
    """
    args = build_parser().parse_args(argv)

    # Load configuration
    config = load_config(args.config)
    if args.offline:
        config["connectivity"]["start_online"] = False

    # Setup logging & log startup info
    otherutils.setup_logging(config, console=args.console, debug=args.debug)
    otherutils.log_startup_info(args, config)

    monitor = create_status_monitor(config["script"].get("status_file", "status.json"))
    engine = SyncEngine.from_config(config, monitor=monitor)

    try:
        engine.start(probe_interval=float(config["connectivity"].get("probe_interval", 0) or 0))
        monitor.set_status("RUNNING")
        return COMMANDS[args.command](engine, args)

    except ApiError as e:
        logger.error("Command %s failed: %s", args.command, e)
        monitor.record_error(str(e))
        monitor.set_status("ERROR")
        _emit({"error": str(e), "status_code": getattr(e, "status_code", None)})
        return 1

    finally:
        engine.shutdown()
        monitor.shutdown()


if __name__ == "__main__":
    sys.exit(main())
