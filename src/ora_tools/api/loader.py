"""
Asynchronous document loader.

:py:func:`load` reads an OpenRaster archive and assembles an
:py:class:`~ora_tools.api.ora_image.OpenRasterImage`. Three tasks run
concurrently: the thumbnail, the merged image, and the stack. Once
``stack.xml`` is parsed, the stack task starts one decode task per layer.
The coroutine returns after every task has settled.

Each task reports a :py:class:`TaskOutcome`; the outcomes are kept in
:py:attr:`OpenRasterImage.load_report`.

Example::

    import asyncio
    from ora_tools import load

    image = asyncio.run(load('drawing.ora'))
    for outcome in image.load_report:
        print(outcome.name, outcome.status)
"""

import asyncio
import logging
import os
from typing import BinaryIO, Callable, Optional, TypeVar, Union

from attrs import frozen
from PIL import Image

from ora_tools.api.layers import PixelLayer
from ora_tools.api.ora_image import OpenRasterImage
from ora_tools.config import DEFAULT_CONFIG, Config
from ora_tools.constants import Entry, TaskStatus
from ora_tools.errors import LayerDecodeFailure, MalformedArchive
from ora_tools.ora.archive import Archive
from ora_tools.ora.stack import ImageElement, parse_stack

logger = logging.getLogger(__name__)

T = TypeVar("T")


@frozen
class TaskOutcome:
    """
    Result of one loading task.

    .. py:attribute:: name

        Archive entry the task read, e.g. ``'mergedimage.png'``.

    .. py:attribute:: status

        :py:class:`~ora_tools.constants.TaskStatus`

    .. py:attribute:: error

        The exception for a failed task, `None` otherwise.
    """

    name: str
    status: TaskStatus
    error: Optional[Exception] = None


async def load(
    fp: Union[BinaryIO, str, bytes, bytearray, os.PathLike],
    config: Optional[Config] = None,
    image_class: type[OpenRasterImage] = OpenRasterImage,
) -> OpenRasterImage:
    """
    Load an OpenRaster document.

    :param fp: filename, archive contents as `bytes`, or file-like object.
    :param config: optional :py:class:`~ora_tools.config.Config`, stored on
        the document.
    :param image_class: document class to instantiate.
    :return: :py:class:`~ora_tools.api.ora_image.OpenRasterImage`
    :raises MalformedArchive: If the archive or its stack.xml is invalid.
    """
    config = config if config is not None else DEFAULT_CONFIG
    archive = await asyncio.to_thread(Archive.open, fp)
    try:
        results = await asyncio.gather(
            _load_optional(archive, Entry.THUMBNAIL.value, config),
            _load_optional(archive, Entry.MERGED_IMAGE.value, config),
            _load_stack(archive, config, image_class),
            return_exceptions=True,
        )
    finally:
        archive.close()

    for result in results:
        if isinstance(result, BaseException):
            raise result

    (thumbnail, thumbnail_outcome), (merged, merged_outcome), stack_result = results
    image, layer_outcomes = stack_result
    image.thumbnail = thumbnail
    image.precomposited = merged
    image.load_report = [thumbnail_outcome, merged_outcome] + layer_outcomes
    logger.debug("Loaded %s", image)
    return image


async def _run(
    func: Callable[..., T], *args: object, timeout: Optional[float] = None
) -> T:
    """Run blocking ``func`` in a worker thread, bounded by ``timeout``."""
    return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)


async def _load_optional(
    archive: Archive, path: str, config: Config
) -> tuple[Optional[Image.Image], TaskOutcome]:
    entry = archive.find(path)
    if entry is None:
        logger.debug("No %s in archive", path)
        return None, TaskOutcome(path, TaskStatus.ABSENT)
    try:
        image = await _run(archive.read_image, entry, timeout=config.decode_timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Timed out decoding %s", path)
        return None, TaskOutcome(path, TaskStatus.ABSENT, e)
    except LayerDecodeFailure as e:
        logger.warning("Failed to decode %s: %s", path, e.reason)
        return None, TaskOutcome(path, TaskStatus.FAILED, e)
    return image, TaskOutcome(path, TaskStatus.LOADED)


async def _load_stack(
    archive: Archive, config: Config, image_class: type[OpenRasterImage]
) -> tuple[OpenRasterImage, list[TaskOutcome]]:
    path = Entry.STACK.value
    entry = archive.find(path)
    if entry is None:
        raise MalformedArchive("Archive has no %s" % path)
    try:
        data = await _run(archive.read_xml, entry, timeout=config.decode_timeout)
    except asyncio.TimeoutError as e:
        raise MalformedArchive("Timed out reading %s" % path) from e
    record: ImageElement = parse_stack(data, source=path)
    image = image_class(record, config=config)

    layers = [layer for layer in image.descendants() if isinstance(layer, PixelLayer)]
    outcomes = await asyncio.gather(
        *(_load_layer(archive, layer, config) for layer in layers)
    )
    return image, [TaskOutcome(path, TaskStatus.LOADED)] + list(outcomes)


async def _load_layer(
    archive: Archive, layer: PixelLayer, config: Config
) -> TaskOutcome:
    try:
        entry = archive.find(layer.src)
        if entry is None:
            raise LayerDecodeFailure(layer.src, "no such entry")
        try:
            image = await _run(archive.read_image, entry, timeout=config.decode_timeout)
        except asyncio.TimeoutError as e:
            raise LayerDecodeFailure(layer.src, "timed out") from e
    except LayerDecodeFailure as e:
        logger.warning("Layer %r has no pixels: %s", layer.name, e)
        return TaskOutcome(layer.src, TaskStatus.FAILED, e)
    layer._set_image(image)
    return TaskOutcome(layer.src, TaskStatus.LOADED)
