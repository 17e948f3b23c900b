import asyncio
import logging

from lxml import etree # type: ignore

from nownext.exceptions import ParseError
from nownext.models import Channel, Program, ScheduleData

logger = logging.getLogger(__name__)

FEED_CHUNK_SIZE = 64 * 1024

# Elements whose character data is collected
_TEXT_ELEMENTS = frozenset({"display-name", "title", "desc", "category"})


def _local_name(tag: str) -> str:
    """Strip a '{namespace}' prefix if present"""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


class XMLTVTarget:
    """
    lxml parser target that turns XMLTV events into a ScheduleData

    The target is a small state machine fed by start/data/end events; no element
    tree is built. One instance handles one document.
    """

    def __init__(self):
        self.channels: dict[str, Channel] = {}
        self.programs: list[Program] = []
        self.dropped_channels = 0
        self.dropped_programs = 0

        self._current_element = ""
        self._text_chunks: list[str] = []
        self._channel_id = ""
        self._display_names: list[str] = []
        self._program_data: dict[str, str] = {}
        self._categories: list[str] = []

    def start(self, tag, attrib) -> None:
        name = _local_name(tag)
        self._current_element = name
        self._text_chunks = []

        if name == "channel":
            self._channel_id = attrib.get("id", "") or ""
            self._display_names = []
        elif name == "programme":
            # channel/start/stop arrive as attributes
            self._program_data = dict(attrib)
            self._categories = []

    def data(self, data: str) -> None:
        if self._current_element in _TEXT_ELEMENTS:
            self._text_chunks.append(data)

    def end(self, tag) -> None:
        name = _local_name(tag)

        if name in _TEXT_ELEMENTS:
            self._collect_text(name, "".join(self._text_chunks).strip())
        elif name == "channel":
            self._commit_channel()
        elif name == "programme":
            self._commit_program()

        self._text_chunks = []
        self._current_element = ""

    def close(self) -> ScheduleData:
        return ScheduleData(channels=self.channels, programs=tuple(self.programs))

    def _collect_text(self, name: str, text: str) -> None:
        if not text:
            return

        if name == "display-name":
            self._display_names.append(text)
        elif name == "title":
            self._program_data["title"] = text
        elif name == "desc":
            self._program_data["desc"] = text
        elif name == "category":
            self._categories.append(text)

    def _commit_channel(self) -> None:
        if self._channel_id and self._display_names:
            self.channels[self._channel_id] = Channel(
                id=self._channel_id,
                display_names=tuple(self._display_names)
            )
        else:
            self.dropped_channels += 1
            logger.debug("Skipping channel with missing ID or display name: %r", self._channel_id)

        self._channel_id = ""
        self._display_names = []

    def _commit_program(self) -> None:
        """
        Commit the programme if channel, start, stop and title are all non-empty

        An attribute that is present but empty (e.g. start="") counts as missing.
        """
        data = self._program_data
        channel_id = data.get("channel")
        start = data.get("start")
        stop = data.get("stop")
        title = data.get("title")

        if channel_id and start and stop and title:
            self.programs.append(Program(
                channel=channel_id,
                start=start,
                stop=stop,
                title=title,
                description=data.get("desc"),
                categories=tuple(self._categories) or None
            ))
        else:
            self.dropped_programs += 1
            logger.debug("Skipping programme with missing required fields: %s", sorted(data))

        self._program_data = {}
        self._categories = []


def parse_xmltv_bytes(data: bytes, *, require_content: bool = True) -> ScheduleData:
    """
    Parse an in-memory XMLTV document

    Args:
        data: Raw document bytes
        require_content: Reject documents that yield no channels and no programs

    Returns:
        Parsed ScheduleData snapshot

    Raises:
        ParseError: If the XML is malformed or (with require_content) empty
    """
    logger.debug(f"Parsing XMLTV document ({len(data) / 1024 / 1024:.2f} MB)")

    if not data or not data.strip():
        raise ParseError("XMLTV document is empty")

    target = XMLTVTarget()
    parser = etree.XMLParser(
        target=target,
        resolve_entities=False,
        no_network=True,
        huge_tree=True
    )

    try:
        for offset in range(0, len(data), FEED_CHUNK_SIZE):
            parser.feed(data[offset:offset + FEED_CHUNK_SIZE])
        schedule = parser.close()
    except etree.XMLSyntaxError as e:
        logger.error(f"  XML parsing error: {e}")
        raise ParseError(f"XMLTV document is not well-formed: {e}") from e

    if target.dropped_channels or target.dropped_programs:
        logger.info(
            "Dropped %s incomplete channel(s) and %s incomplete programme(s)",
            target.dropped_channels,
            target.dropped_programs,
        )

    if require_content and not schedule.channels and not schedule.programs:
        logger.warning("No channels or programs found in XMLTV document")
        raise ParseError("No channels or programs found in XMLTV")

    logger.info(f"XMLTV parsing complete: {len(schedule.channels)} channels, {len(schedule.programs)} programs")

    return schedule


async def parse_xmltv_async(
    data: bytes,
    *,
    parse_timeout_seconds: float | None = None,
    require_content: bool = True
) -> ScheduleData:
    """
    Parse XMLTV bytes off the event loop with timeout protection.

    Parsing is offloaded to the default thread pool executor.

    Keyword Args:
        parse_timeout_seconds: Timeout in seconds for parsing (0/None disables timeout)

    Raises:
        ParseError: If parsing fails or times out
    """
    effective_timeout = parse_timeout_seconds if parse_timeout_seconds and parse_timeout_seconds > 0 else None
    timeout_display = f"{effective_timeout}s" if effective_timeout else "disabled"

    loop = asyncio.get_running_loop()
    logger.debug("Offloading XML parsing to thread pool executor (timeout: %s)...", timeout_display)
    parse_task = loop.run_in_executor(
        None,
        lambda: parse_xmltv_bytes(data, require_content=require_content)
    )

    try:
        if effective_timeout:
            return await asyncio.wait_for(parse_task, timeout=effective_timeout)
        return await parse_task
    except asyncio.TimeoutError as e:
        logger.error("XML parsing timed out after %s", timeout_display)
        raise ParseError("XML parsing timed out - document may be too large or malformed") from e
