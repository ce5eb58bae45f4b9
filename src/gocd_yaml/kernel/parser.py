"""Parse a set of files into a finalized ConfigCollection."""

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

from gocd_yaml.codes import ErrorCode
from gocd_yaml.contracts import PluginError
from gocd_yaml.kernel.collection import ConfigCollection
from gocd_yaml.kernel.reader import MalformedDocument, read_document

logger = logging.getLogger(__name__)


class ConfigParser:
    """Reads, transforms and merges files in lexical path order.

    Every call builds a fresh collection; the parser keeps no state between
    calls.
    """

    def __init__(self, default_format_version: Optional[int] = None):
        self.default_format_version = default_format_version

    def parse_files(self, base_dir: Union[str, Path], files: Iterable[str]) -> ConfigCollection:
        """Parse files given as paths relative to base_dir."""
        base_dir = Path(base_dir)
        collection = ConfigCollection(self.default_format_version)
        for location in sorted(set(files)):
            try:
                content = (base_dir / location).read_bytes()
            except OSError as e:
                logger.warning("Cannot read %s: %s", location, e)
                collection.add_error(location, PluginError(
                    message=f"{location}: cannot read file: {e.strerror or e}",
                    location=location,
                    code=ErrorCode.UNREADABLE_FILE,
                ))
                continue
            self._add(collection, location, content)
        return collection.finalize()

    def parse_contents(self, contents: Mapping[str, Union[str, bytes]]) -> ConfigCollection:
        """Parse in-memory documents keyed by logical path."""
        collection = ConfigCollection(self.default_format_version)
        for location in sorted(contents):
            self._add(collection, location, contents[location])
        return collection.finalize()

    def _add(self, collection: ConfigCollection, location: str, content: Union[str, bytes]) -> None:
        logger.debug("Parsing %s", location)
        try:
            document = read_document(content, location)
        except MalformedDocument as e:
            collection.add_file(location, e)
            return
        collection.add_file(location, document)
