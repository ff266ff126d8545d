"""
Site metadata cache: namespaces, capitalisation rules, timezone, locale,
version and installed extensions, fetched once per session.
"""

import logging
import threading
from typing import Dict, FrozenSet, Optional

from ..core.exceptions import ProtocolError, UnsupportedOperationError
from ..core.models import SiteInfo
from ..engine import classifier
from ..engine.executor import RequestExecutor
from ..parsing.scanner import attributes, element_text, has_attribute, scan_elements, section


logger = logging.getLogger(__name__)


MAIN_NAMESPACE = 0
SPECIAL_NAMESPACE = -1
MEDIA_NAMESPACE = -2

SITEINFO_PARAMS = {
    "action": "query",
    "meta": "siteinfo",
    "siprop": "general|namespaces|namespacealiases|extensions",
}


def parse_siteinfo(text: str) -> SiteInfo:
    """
    Build a SiteInfo from a ``meta=siteinfo`` response.

    Raises:
        ProtocolError: the response lacks the general or namespaces block
    """
    general_element = section(text, "general")
    namespaces = section(text, "namespaces")
    if general_element is None or namespaces is None:
        raise ProtocolError("Site info response is missing general or namespace data")
    general = attributes(general_element)

    name_to_id: Dict[str, int] = {}
    canonical: Dict[int, str] = {}
    local: Dict[int, str] = {}
    subpages = set()
    case_sensitive = set()

    for element in scan_elements(namespaces, "ns"):
        attrs = attributes(element)
        ns_id = int(attrs["id"])
        name = element_text(element)
        local[ns_id] = name
        canonical[ns_id] = attrs.get("canonical", name)
        if name:
            name_to_id[name.lower()] = ns_id
        if canonical[ns_id]:
            name_to_id[canonical[ns_id].lower()] = ns_id
        if has_attribute(element, "subpages"):
            subpages.add(ns_id)
        if attrs.get("case") == "case-sensitive":
            case_sensitive.add(ns_id)

    aliases = section(text, "namespacealiases")
    if aliases is not None:
        for element in scan_elements(aliases, "ns"):
            name_to_id[element_text(element).lower()] = int(attributes(element)["id"])

    extensions = set()
    ext_block = section(text, "extensions")
    if ext_block is not None:
        for element in scan_elements(ext_block, "ext"):
            name = attributes(element).get("name")
            if name:
                extensions.add(name)

    version = general.get("generator", "")
    if version.startswith("MediaWiki "):
        version = version[len("MediaWiki "):]

    return SiteInfo(
        namespace_name_to_id=name_to_id,
        id_to_canonical_name=canonical,
        id_to_local_name=local,
        subpage_namespaces=frozenset(subpages),
        case_sensitive_namespaces=frozenset(case_sensitive),
        capitalizes_first_letter=general.get("case", "first-letter") == "first-letter",
        timezone=general.get("timezone", "UTC"),
        locale=general.get("lang", ""),
        mw_version=version,
        installed_extensions=frozenset(extensions),
    )


class SiteMetadataCache:
    """
    Lazily populated, per-session site metadata.

    The first accessor call fetches everything in one request. Concurrent
    first callers wait for that single fetch; a failed fetch leaves the
    cache empty so the next call tries again.
    """

    def __init__(self, executor: RequestExecutor):
        self.executor = executor
        self._lock = threading.Lock()
        self._info: Optional[SiteInfo] = None

    @property
    def populated(self) -> bool:
        return self._info is not None

    def get(self) -> SiteInfo:
        """Return the cached SiteInfo, fetching it on first use."""
        info = self._info
        if info is not None:
            return info
        with self._lock:
            if self._info is None:
                host = self.executor.session.host
                logger.info(f"Fetching site info for {host}", extra={"wiki": host})
                text = self.executor.execute(SITEINFO_PARAMS)
                classifier.check(text, caller="siteinfo")
                self._info = parse_siteinfo(text)
            return self._info

    def clear(self) -> None:
        with self._lock:
            self._info = None

    # accessors

    def namespace(self, title: str) -> int:
        """
        Namespace ID of a title.

        Lookup is case-insensitive and accepts local names, canonical
        names, aliases, underscores and a leading colon. Titles whose
        prefix is not a namespace are in the main namespace.
        """
        info = self.get()
        title = title.replace("_", " ").lstrip(":")
        if ":" not in title:
            return MAIN_NAMESPACE
        prefix = title[:title.index(":")].strip().lower()
        return info.namespace_name_to_id.get(prefix, MAIN_NAMESPACE)

    def namespace_identifier(self, namespace: int) -> str:
        """Local name of a namespace; empty for the main namespace or an unknown ID."""
        return self.get().id_to_local_name.get(namespace, "")

    def supports_subpages(self, namespace: int) -> bool:
        info = self.get()
        if namespace not in info.id_to_canonical_name:
            raise ValueError(f"Invalid namespace: {namespace}")
        return namespace in info.subpage_namespaces

    def uses_capital_links(self) -> bool:
        return self.get().capitalizes_first_letter

    def timezone(self) -> str:
        return self.get().timezone

    def locale(self) -> str:
        return self.get().locale

    def version(self) -> str:
        return self.get().mw_version

    def installed_extensions(self) -> FrozenSet[str]:
        return self.get().installed_extensions

    def requires_extension(self, name: str) -> None:
        """
        Raises:
            UnsupportedOperationError: the extension is not installed
        """
        if name not in self.installed_extensions():
            raise UnsupportedOperationError(
                f"Extension {name} is not installed on {self.executor.session.host}"
            )

    # title helpers

    def normalize(self, title: str) -> str:
        """
        Canonical form of a title as the server would report it.

        Underscores become spaces, a leading colon is dropped, the namespace
        prefix is replaced by its local name and, unless the namespace is
        case-sensitive, the first letter of the page name is capitalised.
        """
        info = self.get()
        title = title.replace("_", " ").strip().lstrip(":").strip()
        ns = self.namespace(title)
        name = self.remove_namespace(title).strip()
        if ns not in info.case_sensitive_namespaces and info.capitalizes_first_letter and name:
            name = name[0].upper() + name[1:]
        if ns == MAIN_NAMESPACE:
            return name
        return f"{info.id_to_local_name[ns]}:{name}"

    def remove_namespace(self, title: str) -> str:
        """Page name without its namespace prefix."""
        stripped = title.lstrip(":")
        if self.namespace(stripped) == MAIN_NAMESPACE:
            return title
        return stripped[stripped.index(":") + 1:]

    def talk_page(self, title: str) -> str:
        """
        Talk page associated with a subject page.

        Raises:
            ValueError: the title is itself a talk page, or a special or
                media page (which have no talk pages)
        """
        ns = self.namespace(title)
        if ns < 0:
            raise ValueError(f"{title} is a special or media page and has no talk page")
        if ns % 2 == 1:
            raise ValueError(f"{title} is already a talk page")
        return f"{self.namespace_identifier(ns + 1)}:{self.remove_namespace(title)}"

    def root_page(self, title: str) -> str:
        """Top of the subpage hierarchy, or the title itself where subpages are not enabled."""
        if not self.supports_subpages(self.namespace(title)):
            return title
        slash = title.find("/")
        return title if slash < 0 else title[:slash]

    def parent_page(self, title: str) -> str:
        """Immediate parent in the subpage hierarchy, or the title itself."""
        if not self.supports_subpages(self.namespace(title)):
            return title
        slash = title.rfind("/")
        return title if slash < 0 else title[:slash]
