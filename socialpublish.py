import argparse
import json
import logging
import os
import sys

import utils.others as otherutils
from core.errors import ApiError, ValidationError
from core.models import Message, PostRequest
from socials.platforms import normalize_target
from socials.publisher import SocialPublisher
from definitions import DEFAULT_CONFIG_FILE
from utils.config import load_config

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    # fmt: off
    parser = argparse.ArgumentParser(description="Publish one post (or thread) to several social networks at once.")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_FILE), help="Path to the configuration file (default: config.yaml).")
    parser.add_argument("--mode", type=str, choices=["prod", "debug"], help="Which credentials block to use (overrides script.mode).")
    parser.add_argument("--nosocial", action="store_true", help="Log messages instead of posting to socials.")
    parser.add_argument("--dry-run", dest="nosocial", action="store_true", help="Alias for --nosocial (no posting).")
    parser.add_argument("--console", action="store_true", help="Write logs to console instead of a file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--targets", type=str, help="Comma separated targets (default: every target enabled in config).")
    parser.add_argument("--message", action="append", default=[], help="Message text; repeat to build a thread.")
    parser.add_argument("--link", type=str, help="Link attached to the first message.")
    parser.add_argument("--image", action="append", default=[], help="Image reference for the first message; repeatable.")
    parser.add_argument("--language", type=str, help="Language code of the post (e.g. en).")
    parser.add_argument("--request", type=str, help="Path to a JSON post request ({targets, language, messages}).")
    parser.add_argument("--render-feed", action="store_true", help="Print the Atom feed and exit.")
    parser.add_argument("--filter-links", choices=["include", "exclude"], help="Feed filter on entries with links.")
    parser.add_argument("--filter-images", choices=["include", "exclude"], help="Feed filter on entries with images.")
    # fmt: on
    return parser.parse_args(argv)


def build_request(args, publisher: SocialPublisher) -> PostRequest:
    """PostRequest from --request (JSON file) or from --message/--link/--image flags."""
    targets = [t for t in args.targets.split(",") if t.strip()] if args.targets else "enabled"

    if args.request:
        try:
            with open(args.request, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ValidationError(f"Cannot read request file {args.request}: {e}")
        if not isinstance(data, dict):
            raise ValidationError(f"Request file {args.request} must contain a JSON object")
        parsed = PostRequest.from_dict(data)
        if targets == "enabled" and parsed.targets:
            targets = list(parsed.targets)
        return publisher.request(parsed.messages, targets=targets, language=args.language or parsed.language)

    messages = []
    for index, text in enumerate(args.message):
        if index == 0:
            messages.append(Message(content=text, link=args.link, images=tuple(args.image)))
        else:
            messages.append(Message(content=text))
    return publisher.request(messages, targets=targets, language=args.language)


def main(argv=None) -> int:
    """
    Entry point for the socialpublish CLI.

    Loads configuration, sets up logging, builds the publisher from config and
    either renders the feed or broadcasts one request. The composite result is
    printed as JSON; the exit code is 1 when any target failed.
    """
    args = parse_arguments(argv)

    # Load configuration
    config = load_config(args.config)

    # Setup logging & log startup info
    otherutils.setup_logging(config, console=args.console, debug=args.debug)
    otherutils.log_startup_info(args, config)

    # Mode precedence: --mode, then SOCIALPUBLISH_MODE, then script.mode
    mode = args.mode or os.getenv("SOCIALPUBLISH_MODE") or None
    publisher = SocialPublisher(config, mode=mode, nosocial=True if args.nosocial else None)

    if args.render_feed:
        try:
            print(publisher.render_feed(filter_by_links=args.filter_links, filter_by_images=args.filter_images))
        except ApiError as e:
            logger.error("Cannot render feed: %s", e.message)
            print(json.dumps(e.to_dict(), indent=2))
            return 1
        return 0

    try:
        request = build_request(args, publisher)
    except ApiError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return 1

    logger.info("Publishing %d message(s) to %s", len(request.messages), ", ".join(map(normalize_target, request.targets)))
    result = publisher.publish(request)

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
