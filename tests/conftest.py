"""
Shared test fixtures and configuration for pytest.
"""

import logging
import sys
from pathlib import Path
from typing import List

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from wikiclient.connectors import ScriptedConnector
from wikiclient.core.session import Session
from wikiclient.engine.executor import RequestExecutor


logger = logging.getLogger(__name__)


# ============================================================================
# Canned API responses
# ============================================================================

def api_response(body: str = "") -> str:
    """Wrap a fragment in the API's XML envelope."""
    return f'<?xml version="1.0"?><api batchcomplete="">{body}</api>'


EN_SITEINFO = api_response(
    '<query>'
    '<general mainpage="Main Page" sitename="Wikipedia" generator="MediaWiki 1.42.0-wmf.5"'
    ' case="first-letter" lang="en" timezone="UTC" />'
    '<namespaces>'
    '<ns id="-2" case="first-letter" canonical="Media" xml:space="preserve">Media</ns>'
    '<ns id="-1" case="first-letter" canonical="Special" xml:space="preserve">Special</ns>'
    '<ns id="0" case="first-letter" content="" xml:space="preserve" />'
    '<ns id="1" case="first-letter" subpages="" canonical="Talk" xml:space="preserve">Talk</ns>'
    '<ns id="2" case="first-letter" subpages="" canonical="User" xml:space="preserve">User</ns>'
    '<ns id="3" case="first-letter" subpages="" canonical="User talk" xml:space="preserve">User talk</ns>'
    '<ns id="4" case="first-letter" subpages="" canonical="Project" xml:space="preserve">Wikipedia</ns>'
    '<ns id="5" case="first-letter" subpages="" canonical="Project talk" xml:space="preserve">Wikipedia talk</ns>'
    '<ns id="6" case="first-letter" canonical="File" xml:space="preserve">File</ns>'
    '<ns id="7" case="first-letter" subpages="" canonical="File talk" xml:space="preserve">File talk</ns>'
    '<ns id="12" case="first-letter" subpages="" canonical="Help" xml:space="preserve">Help</ns>'
    '<ns id="13" case="first-letter" subpages="" canonical="Help talk" xml:space="preserve">Help talk</ns>'
    '<ns id="14" case="first-letter" canonical="Category" xml:space="preserve">Category</ns>'
    '<ns id="100" case="first-letter" subpages="" canonical="Portal" xml:space="preserve">Portal</ns>'
    '<ns id="101" case="first-letter" subpages="" canonical="Portal talk" xml:space="preserve">Portal talk</ns>'
    '</namespaces>'
    '<namespacealiases>'
    '<ns id="4" xml:space="preserve">WP</ns>'
    '<ns id="6" xml:space="preserve">Image</ns>'
    '</namespacealiases>'
    '<extensions>'
    '<ext type="parserhook" name="Cite" />'
    '<ext type="antispam" name="Abuse Filter" />'
    '</extensions>'
    '</query>'
)

DE_SITEINFO = api_response(
    '<query>'
    '<general mainpage="Wikipedia:Hauptseite" generator="MediaWiki 1.42.0" case="first-letter"'
    ' lang="de" timezone="Europe/Berlin" />'
    '<namespaces>'
    '<ns id="0" case="first-letter" content="" xml:space="preserve" />'
    '<ns id="1" case="first-letter" subpages="" canonical="Talk" xml:space="preserve">Diskussion</ns>'
    '<ns id="12" case="first-letter" subpages="" canonical="Help" xml:space="preserve">Hilfe</ns>'
    '<ns id="13" case="first-letter" subpages="" canonical="Help talk" xml:space="preserve">Hilfe Diskussion</ns>'
    '<ns id="14" case="first-letter" canonical="Category" xml:space="preserve">Kategorie</ns>'
    '</namespaces>'
    '</query>'
)

WIKTIONARY_SITEINFO = api_response(
    '<query>'
    '<general mainpage="Wiktionary:Main Page" generator="MediaWiki 1.42.0" case="case-sensitive"'
    ' lang="en" timezone="UTC" />'
    '<namespaces>'
    '<ns id="0" case="case-sensitive" content="" xml:space="preserve" />'
    '<ns id="4" case="case-sensitive" subpages="" canonical="Project" xml:space="preserve">Wiktionary</ns>'
    '</namespaces>'
    '</query>'
)


# ============================================================================
# Pytest configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def api():
    """Fixture providing the response envelope builder."""
    return api_response


@pytest.fixture
def en_siteinfo() -> str:
    return EN_SITEINFO


@pytest.fixture
def de_siteinfo() -> str:
    return DE_SITEINFO


@pytest.fixture
def wiktionary_siteinfo() -> str:
    return WIKTIONARY_SITEINFO


@pytest.fixture
def session() -> Session:
    """Fixture providing a session with write throttling disabled."""
    return Session("test.wikipedia.org", throttle_interval=0.0)


@pytest.fixture
def connector():
    """Fixture providing an empty scripted connector."""
    connector = ScriptedConnector()
    yield connector
    connector.close()


@pytest.fixture
def sleeps() -> List[float]:
    """Records every backoff the executor would have slept for."""
    return []


@pytest.fixture
def executor(session, connector, sleeps) -> RequestExecutor:
    """Fixture providing an executor that records sleeps instead of sleeping."""
    return RequestExecutor(session, connector, sleep=sleeps.append)
