import argparse
import logging
from typing import Optional, Union

from ora_tools import OpenRasterImage
from ora_tools.api.layers import Layer
from ora_tools.errors import MalformedArchive
from ora_tools.version import __version__

try:
    from IPython.lib.pretty import pprint
except ImportError:
    from pprint import pprint

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="ora-tools command line utility.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Be more verbose.")
    parser.add_argument("--version", action="version", version=__version__)

    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser(
        "export", help="Export OpenRaster document or layer as PNG"
    )
    export_parser.add_argument(
        "input_file",
        help="Input ORA file (optionally with layer index, e.g. file.ora[0])",
    )
    export_parser.add_argument("output_file", help="Output image file")
    export_parser.add_argument(
        "--no-merged",
        action="store_true",
        help="Composite layers even if the file has a merged image",
    )

    show_parser = subparsers.add_parser("show", help="Show the layer tree")
    show_parser.add_argument("input_file", help="Input ORA file")

    debug_parser = subparsers.add_parser("debug", help="Show parsed stack.xml")
    debug_parser.add_argument("input_file", help="Input ORA file")

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> Optional[int]:
    args = parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    if args.verbose:
        logging.getLogger("ora_tools").setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if args.command == "export":
        input_parts = args.input_file.split("[")
        input_file = input_parts[0]
        if len(input_parts) > 1:
            indices = [int(x.rstrip("]")) for x in input_parts[1:]]
        else:
            indices = []
        try:
            layer: Union[OpenRasterImage, Layer] = OpenRasterImage.open(input_file)
        except MalformedArchive as e:
            logger.error(str(e))
            return 1
        for index in indices:
            # OpenRasterImage and Group both support indexing
            layer = layer[index]  # type: ignore[index]
        if isinstance(layer, OpenRasterImage):
            image = layer.composite(prefer_precomposited=not args.no_merged)
        else:
            image = layer.composite()
        if image:
            image.save(args.output_file)
        else:
            logger.info("Nothing to export for %s", layer)

    elif args.command == "show":
        ora = OpenRasterImage.open(args.input_file)
        pprint(ora)

    elif args.command == "debug":
        ora = OpenRasterImage.open(args.input_file)
        pprint(ora._record)
        for outcome in ora.load_report:
            logger.info("%s: %s", outcome.name, outcome.status.value)

    return None


if __name__ == "__main__":
    main()
