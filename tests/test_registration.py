"""RDAP bootstrap, referral and WHOIS fallback, against a fake network."""

import pytest

from intel.registration import RdapBootstrap, merge_registration, parse_registrant, rdap_lookup
from intel.schemas import RegistrationRecord

BOOTSTRAP = {
    "services": [
        [["com", "net"], ["https://rdap.verisign.com/com/v1/"]],
        [["is"], ["https://rdap.isnic.is/rdap"]],
    ]
}
REFERRAL_HREF = "https://rdap.registrar.test/domain/example.com"


def _vcard(*items):
    return ["vcard", [["version", {}, "text", "4.0"], *items]]


def _registrant(name=None, org=None, country=None, email=None):
    items = []
    if name:
        items.append(["fn", {}, "text", name])
    if org:
        items.append(["org", {}, "text", org])
    if country:
        items.append(["adr", {}, "text", ["", "", "Laugavegur 1", "Reykjavik", "", "101", country]])
    if email:
        items.append(["email", {}, "text", email])
    return {"roles": ["registrant"], "vcardArray": _vcard(*items)}


REGISTRAR = {"roles": ["registrar"], "handle": "292", "vcardArray": _vcard(["fn", {}, "text", "MarkMonitor Inc."])}
EVENTS = [{"eventAction": "registration", "eventDate": "1995-08-14T04:00:00Z"}]

WHOXY_OK = {
    "status": 1,
    "create_date": "2020-01-01",
    "domain_registrar": {"registrar_name": "NameSilo, LLC"},
    "registrant_contact": {
        "full_name": "Nguyen Van A",
        "company_name": "Shop Online",
        "country_name": "Vietnam",
        "email_address": "shop.online@gmail.com",
    },
}


@pytest.fixture
def bootstrap():
    return RdapBootstrap()


class TestRdapLookup:
    @pytest.mark.asyncio
    async def test_registry_registrant_skips_referral_and_whois(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", BOOTSTRAP)
        fake_net.json(
            "rdap.verisign.com",
            {
                "events": EVENTS,
                "entities": [REGISTRAR, _registrant(org="Example Inc.", country="US")],
                "links": [{"rel": "related", "href": REFERRAL_HREF}],
            },
        )
        fake_net.json("api.whoxy.com", WHOXY_OK)

        async with fake_net.client() as client:
            record = await rdap_lookup("example.com", client=client, whois_api_key="k", bootstrap=bootstrap)

        assert record.source == "rdap"
        assert record.registrant_org == "Example Inc."
        assert record.registrant_country == "US"
        assert record.registrar == "MarkMonitor Inc."
        assert record.registration_date == "1995-08-14T04:00:00Z"
        assert record.domain_age.endswith("years")
        assert "api.whoxy.com" not in fake_net.hosts_called()
        assert "rdap.registrar.test" not in fake_net.hosts_called()
        assert fake_net.calls[1].headers["accept"] == "application/rdap+json"

    @pytest.mark.asyncio
    async def test_referral_fills_registrant(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", BOOTSTRAP)
        fake_net.json(
            "rdap.verisign.com",
            {"events": EVENTS, "entities": [REGISTRAR], "links": [{"rel": "related", "href": REFERRAL_HREF}]},
        )
        fake_net.json(
            "rdap.registrar.test",
            {"entities": [_registrant(name="Jon Jonsson", country="IS", email="jon@example.com")]},
        )

        async with fake_net.client() as client:
            record = await rdap_lookup("example.com", client=client, bootstrap=bootstrap)

        assert record.source == "rdap_referral"
        assert record.registrant_name == "Jon Jonsson"
        # Registry answer keeps priority for fields it had
        assert record.registrar == "MarkMonitor Inc."
        assert record.registration_date == "1995-08-14T04:00:00Z"

    @pytest.mark.asyncio
    async def test_whois_fills_gaps_behind_rdap(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", BOOTSTRAP)
        fake_net.json("rdap.verisign.com", {"events": EVENTS, "entities": [REGISTRAR]})
        fake_net.json("api.whoxy.com", WHOXY_OK)

        async with fake_net.client() as client:
            record = await rdap_lookup("example.com", client=client, whois_api_key="k", bootstrap=bootstrap)

        assert record.source == "rdap+whois"
        assert record.registrant_org == "Shop Online"
        assert record.registrant_country == "Vietnam"
        assert record.registrar == "MarkMonitor Inc."
        assert record.registration_date == "1995-08-14T04:00:00Z"

    @pytest.mark.asyncio
    async def test_whois_only_when_rdap_unavailable(self, fake_net, bootstrap):
        fake_net.fail("data.iana.org")
        fake_net.json("api.whoxy.com", WHOXY_OK)

        async with fake_net.client() as client:
            record = await rdap_lookup("example.com", client=client, whois_api_key="k", bootstrap=bootstrap)

        assert record.source == "whois"
        assert record.registrar == "NameSilo, LLC"

    @pytest.mark.asyncio
    async def test_no_whois_key_means_no_whois_request(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", {"services": []})

        async with fake_net.client() as client:
            record = await rdap_lookup("example.zz", client=client, bootstrap=bootstrap)

        assert record == RegistrationRecord()
        assert record.source is None
        assert fake_net.hosts_called() == ["data.iana.org"]

    @pytest.mark.asyncio
    async def test_whois_not_registered_counts_as_privacy(self, fake_net, bootstrap):
        fake_net.fail("data.iana.org")
        fake_net.json("api.whoxy.com", {**WHOXY_OK, "domain_registered": "no"})

        async with fake_net.client() as client:
            record = await rdap_lookup("example.com", client=client, whois_api_key="k", bootstrap=bootstrap)

        assert record.privacy_protected is True


class TestRdapBootstrap:
    @pytest.mark.asyncio
    async def test_fetched_once(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", BOOTSTRAP)

        async with fake_net.client() as client:
            assert await bootstrap.server_for("com", client) == "https://rdap.verisign.com/com/v1/"
            assert await bootstrap.server_for("IS", client) == "https://rdap.isnic.is/rdap/"
            assert await bootstrap.server_for("zz", client) is None

        assert fake_net.hosts_called() == ["data.iana.org"]
        assert bootstrap.loaded

    @pytest.mark.asyncio
    async def test_failed_fetch_is_retried(self, fake_net, bootstrap):
        fake_net.json("data.iana.org", {"error": "down"}, status=503)

        async with fake_net.client() as client:
            assert await bootstrap.server_for("com", client) is None
            assert await bootstrap.server_for("com", client) is None

        assert not bootstrap.loaded
        assert len(fake_net.calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self, fake_net, bootstrap):
        fake_net.json(
            "data.iana.org",
            {
                "services": [
                    None,
                    [None, ["https://rdap.broken.test/"]],
                    [["com"], [42]],
                    {"tlds": ["com"]},
                    [["com"]],
                    [["com", "net"], ["https://rdap.verisign.com/com/v1"]],
                ]
            },
        )

        async with fake_net.client() as client:
            assert await bootstrap.server_for("com", client) == "https://rdap.verisign.com/com/v1/"
            assert await bootstrap.server_for("org", client) is None


class TestParseRegistrant:
    def test_privacy_proxy_org(self):
        fields = parse_registrant([_registrant(org="Privacy service provided by Withheld for Privacy ehf", country="IS")])
        assert fields["privacy_protected"] is True
        assert fields["registrant_country"] == "IS"

    def test_short_redacted_name_dropped(self):
        fields = parse_registrant([_registrant(name="REDACTED FOR PRIVACY", org="Acme")])
        assert fields["registrant_name"] is None
        assert fields["registrant_org"] == "Acme"

    def test_no_registrant_entity(self):
        assert parse_registrant([REGISTRAR]) == {}


class TestMergeRegistration:
    def test_first_non_empty_field_wins(self):
        rdap = RegistrationRecord(registrant_org="Registry Org", registrant_country="IS", source="rdap")
        whois = RegistrationRecord(registrant_org="Whois Org", registrant_email="a@b.is", source="whois")

        merged = merge_registration(rdap, whois)

        assert merged.registrant_org == "Registry Org"
        assert merged.registrant_email == "a@b.is"
        assert merged.source == "rdap"

    def test_privacy_follows_identity_source(self):
        rdap = RegistrationRecord(registrant_org="Acme", privacy_protected=False, source="rdap")
        whois = RegistrationRecord(registrant_org="Proxy", privacy_protected=True, source="whois")

        assert merge_registration(rdap, whois).privacy_protected is False

    def test_all_none(self):
        assert merge_registration(None, None) == RegistrationRecord()
