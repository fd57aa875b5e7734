"""
Tests for need detection and industry resolution.
"""

import pytest


class TestTrendingTags:

    def test_orders_by_frequency_then_first_seen(self, sample_catalog):
        from marketplace.needs import trending_tags

        tags = trending_tags(sample_catalog)

        assert tags[0] == "Health"
        assert tags[1:4] == ["Claims", "Intake", "Finance"]

    def test_counts_case_insensitively(self):
        from marketplace.models import CatalogItem
        from marketplace.needs import trending_tags

        catalog = [
            CatalogItem(id="1", tags=["crm"]),
            CatalogItem(id="2", tags=["Billing"]),
            CatalogItem(id="3", tags=["billing"]),
        ]

        assert trending_tags(catalog) == ["Billing", "Crm"]


class TestDetectNeeds:

    def test_profile_signals_come_first(self, sample_catalog, sample_profile_dict):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile.model_validate(sample_profile_dict)
        needs = detect_needs(profile, sample_catalog)

        assert needs == [
            "Healthcare",
            "Operations Workflows",
            "Analyst Enablement",
            "Startup Velocity",
        ]

    def test_never_more_than_four(self, sample_catalog, sample_profile_dict):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile.model_validate(sample_profile_dict)

        assert len(detect_needs(profile, sample_catalog)) == 4

    def test_trending_tags_fill_without_profile(self, sample_catalog):
        from marketplace.needs import detect_needs

        assert detect_needs(None, sample_catalog) == ["Health", "Claims", "Intake", "Finance"]

    def test_duplicates_removed_case_insensitively(self, sample_catalog):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile(industry="HEALTH")
        needs = detect_needs(profile, sample_catalog)

        assert needs == ["Health", "Claims", "Intake", "Finance"]

    def test_empty_catalog_keeps_profile_needs(self):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile(industry="logistics", pain_points=["late_shipments"])

        assert detect_needs(profile, []) == ["Logistics", "Late Shipments"]

    def test_nothing_known_yields_empty(self):
        from marketplace.needs import detect_needs

        assert detect_needs(None, []) == []

    @pytest.mark.parametrize("team_size,label", [
        (501, "Enterprise Scale"),
        (500, "Team Productivity"),
        (121, "Team Productivity"),
        (120, "Startup Velocity"),
        (3, "Startup Velocity"),
    ])
    def test_team_size_buckets(self, team_size, label):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile(team_size=team_size)

        assert detect_needs(profile, []) == [label]

    def test_zero_team_size_ignored(self):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile(team_size=0, role="cto")

        assert detect_needs(profile, []) == ["Cto Enablement"]

    def test_non_numeric_team_size_ignored(self):
        from marketplace.models import UserProfile
        from marketplace.needs import detect_needs

        profile = UserProfile(team_size="lots", role="cto")

        assert detect_needs(profile, []) == ["Cto Enablement"]


class TestDetectIndustry:

    @pytest.mark.parametrize("email,industry", [
        ("ops@medline.com", "Healthcare"),
        ("me@www.firstbank.co", "Financial Services"),
        ("buyer@shopify.com", "Ecommerce"),
        ("dean@stateschool.edu", "Education"),
        ("ceo@acmecloud.io", "Software"),
    ])
    def test_domain_keywords(self, email, industry):
        from marketplace.needs import detect_industry

        assert detect_industry(email) == industry

    def test_tld_is_ignored(self):
        from marketplace.needs import detect_industry

        # "edu" only appears in the TLD
        assert detect_industry("someone@acme.edu") is None

    def test_falls_back_when_unmatched(self):
        from marketplace.needs import detect_industry

        assert detect_industry("a@acme.com", "Retail") == "Retail"
        assert detect_industry("a@acme.com") is None

    @pytest.mark.parametrize("email", [None, "", "not-an-email", "trailing@"])
    def test_malformed_email_never_raises(self, email):
        from marketplace.needs import detect_industry

        assert detect_industry(email, "Fallback") == "Fallback"

    def test_resolve_prefers_email_over_declared(self):
        from marketplace.models import UserProfile
        from marketplace.needs import resolve_industry

        profile = UserProfile(industry="retail", email="x@medline.com")

        assert resolve_industry(profile) == "Healthcare"

    def test_resolve_uses_declared_industry(self):
        from marketplace.models import UserProfile
        from marketplace.needs import resolve_industry

        profile = UserProfile(industry="supply_chain", email="x@acme.com")

        assert resolve_industry(profile) == "Supply Chain"
        assert resolve_industry(None) is None


class TestResolveActiveNeed:

    def test_previous_choice_survives(self):
        from marketplace.needs import resolve_active_need

        assert resolve_active_need("claims", ["Health", "Claims"]) == "claims"

    def test_industry_match_preferred(self):
        from marketplace.needs import resolve_active_need

        needs = ["Ops Workflows", "Healthcare Billing"]

        assert resolve_active_need(None, needs, "Healthcare") == "Healthcare Billing"

    def test_first_need_otherwise(self):
        from marketplace.needs import resolve_active_need

        assert resolve_active_need("gone", ["Health", "Claims"]) == "Health"
        assert resolve_active_need("anything", []) is None
