from datetime import datetime

import httpx
import pytest

from studio.feeds import (
    GitHubBitcoinFetcher,
    NVDFetcher,
    OptechFetcher,
    extract_bip_references,
    fetch_all,
    parse_timestamp,
    stable_hash,
)
from studio.feeds.github import severity_from_labels
from studio.models.signal import SignalSeverity, SignalSource

NVD_PAYLOAD = {
    "vulnerabilities": [
        {
            "cve": {
                "id": "CVE-2024-0001",
                "published": "2024-05-01T10:00:00.000",
                "descriptions": [
                    {"lang": "es", "value": "ignorado"},
                    {"lang": "en", "value": "Bitcoin Core flaw in BIP-141 witness handling, see BIP 141."},
                ],
                "metrics": {"cvssMetricV31": [{"cvssData": {"baseSeverity": "HIGH"}}]},
            }
        },
        {"cve": {"id": "CVE-2024-0002", "descriptions": []}},
        {"cve": {}},
    ]
}

GITHUB_PAYLOAD = [
    {
        "number": 30001,
        "title": "Security: crash in BIP-324 handshake",
        "body": "Found while fuzzing",
        "labels": [{"name": "Bug"}, {"name": "Security"}],
        "html_url": "https://github.com/bitcoin/bitcoin/issues/30001",
        "created_at": "2024-06-01T12:00:00Z",
    }
]

OPTECH_FEED = """<?xml version="1.0"?>
<rss><channel>
  <item>
    <title>Newsletter #300: vulnerability disclosure</title>
    <link>https://bitcoinops.org/en/newsletters/300/</link>
    <description>&lt;p&gt;Details about a BIP-32 attack&lt;/p&gt;</description>
    <pubDate>Wed, 01 May 2024 12:00:00 +0000</pubDate>
  </item>
  <item>
    <title>Newsletter #301: conference recap</title>
    <link>https://bitcoinops.org/en/newsletters/301/</link>
    <description>Talks and workshops</description>
    <pubDate>Wed, 08 May 2024 12:00:00 +0000</pubDate>
  </item>
</channel></rss>"""


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHelpers:
    def test_extract_bip_references(self):
        text = "Relates to BIP-141, bip 141, BIP32 and BIP-0009 but not BIP-99999"
        assert extract_bip_references(text) == ["BIP-141", "BIP-32", "BIP-9"]

    def test_extract_from_empty(self):
        assert extract_bip_references("") == []

    def test_parse_timestamp(self):
        assert parse_timestamp("2024-06-01T12:00:00Z") == datetime(2024, 6, 1, 12)
        assert parse_timestamp("2024-06-01T14:00:00+02:00") == datetime(2024, 6, 1, 12)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(None) is None

    def test_stable_hash(self):
        assert stable_hash("a") == "2p"
        assert stable_hash("ab") == "2e9"
        assert stable_hash("") == "0"
        assert stable_hash("https://bitcoinops.org/x") == stable_hash("https://bitcoinops.org/x")

    @pytest.mark.parametrize(
        "labels, severity",
        [
            (["Bug", "Security"], SignalSeverity.HIGH),
            (["P-Critical"], SignalSeverity.HIGH),
            (["Bug", "Minor"], SignalSeverity.LOW),
            (["Bug"], SignalSeverity.MEDIUM),
        ],
    )
    def test_severity_from_labels(self, labels, severity):
        assert severity_from_labels(labels) == severity


class TestNVDFetcher:
    async def test_parses_cves(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=NVD_PAYLOAD)

        fetcher = NVDFetcher(api_key="k", client=client_for(handler))
        signals = await fetcher.fetch()

        assert len(signals) == 2
        first = signals[0]
        assert first.source == SignalSource.NVD
        assert first.external_id == "CVE-2024-0001"
        assert first.cve_id == "CVE-2024-0001"
        assert first.source_url == "https://nvd.nist.gov/vuln/detail/CVE-2024-0001"
        assert first.severity == SignalSeverity.HIGH
        assert first.related_bips == ["BIP-141"]
        assert first.description.startswith("Bitcoin Core flaw")
        assert signals[1].severity == SignalSeverity.UNKNOWN
        assert seen[0].headers["apiKey"] == "k"
        await fetcher.close()

    async def test_since_adds_date_window(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json={"vulnerabilities": []})

        fetcher = NVDFetcher(client=client_for(handler))
        assert await fetcher.fetch(datetime(2024, 1, 1)) == []
        assert "lastModStartDate=2024-01-01T00:00:00.000" in urls[0]

    async def test_http_error_returns_nothing(self):
        fetcher = NVDFetcher(client=client_for(lambda request: httpx.Response(503)))
        assert await fetcher.fetch() == []


class TestGitHubFetcher:
    async def test_parses_issues(self):
        fetcher = GitHubBitcoinFetcher(client=client_for(lambda request: httpx.Response(200, json=GITHUB_PAYLOAD)))
        [signal] = await fetcher.fetch()
        assert signal.external_id == "bitcoin-issue-30001"
        assert signal.severity == SignalSeverity.HIGH
        assert signal.related_bips == ["BIP-324"]
        assert signal.published_date == datetime(2024, 6, 1, 12)

    async def test_unexpected_payload(self):
        fetcher = GitHubBitcoinFetcher(client=client_for(lambda request: httpx.Response(200, json={"message": "x"})))
        assert await fetcher.fetch() == []


class TestOptechFetcher:
    async def test_keeps_security_items(self):
        fetcher = OptechFetcher(client=client_for(lambda request: httpx.Response(200, text=OPTECH_FEED)))
        [signal] = await fetcher.fetch()
        assert signal.source == SignalSource.BITCOIN_OPTECH
        assert signal.external_id == f"optech-{stable_hash('https://bitcoinops.org/en/newsletters/300/')}"
        assert signal.description == "Details about a BIP-32 attack"
        assert signal.severity == SignalSeverity.UNKNOWN
        assert signal.related_bips == ["BIP-32"]

    async def test_since_skips_older_items(self):
        fetcher = OptechFetcher(client=client_for(lambda request: httpx.Response(200, text=OPTECH_FEED)))
        assert await fetcher.fetch(datetime(2024, 5, 5)) == []

    async def test_invalid_xml(self):
        fetcher = OptechFetcher(client=client_for(lambda request: httpx.Response(200, text="<rss")))
        assert await fetcher.fetch() == []


class TestFetchAll:
    async def test_failing_fetcher_is_skipped(self):
        class Broken(NVDFetcher):
            async def fetch(self, since=None):
                raise RuntimeError("boom")

        good = GitHubBitcoinFetcher(client=client_for(lambda request: httpx.Response(200, json=GITHUB_PAYLOAD)))
        signals = await fetch_all([Broken(), good])
        assert [s.external_id for s in signals] == ["bitcoin-issue-30001"]
