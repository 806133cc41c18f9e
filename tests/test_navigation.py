"""Tests for the admin navigation."""
from cmskit.modules.module import AnonymousModule
from cmskit.navigation import Navigation

CONFIG = {
    "events": {"title": "Events", "module": True},
    "settings": {
        "title": "Settings",
        "route": "twill.settings.index",
        "secondary_navigation": {
            "seo": {"title": "SEO", "route": "twill.settings.seo"},
            "pages": {"title": "Pages", "module": True},
        },
    },
}


def test_module_entries_resolve_to_index_route():
    navigation = Navigation.from_config(CONFIG, url_for=lambda name: f"/url/{name}")
    events = navigation.links[0]
    assert events.route_name == "twill.events.index"
    assert events.url == "/url/twill.events.index"
    assert events.children == []


def test_module_link_is_active_for_any_module_route():
    navigation = Navigation.from_config(CONFIG)
    assert navigation.active_primary_link("twill.events.edit").title == "Events"
    assert navigation.active_primary_link("twill.eventsx.edit") is None
    assert navigation.active_primary_link(None) is None


def test_secondary_links_follow_active_primary():
    navigation = Navigation.from_config(CONFIG)
    assert navigation.active_primary_link("twill.settings.seo").title == "Settings"
    assert navigation.active_primary_link("twill.pages.edit").title == "Settings", "An active child activates its parent"
    assert [link.title for link in navigation.secondary_links("twill.settings.seo")] == ["SEO", "Pages"]
    assert navigation.secondary_links("twill.events.index") == []


def test_to_dict_marks_active_links():
    navigation = Navigation.from_config(CONFIG)
    settings = navigation.links[1].to_dict("twill.settings.seo")
    assert settings["active"] is True
    assert [(c["title"], c["active"]) for c in settings["children"]] == [("SEO", True), ("Pages", False)]


def test_navigation_endpoint(app, client):
    AnonymousModule.make("events", app).boot()
    AnonymousModule.make("articles", app).boot()

    response = client.get("/admin/navigation", params={"route": "twill.articles.edit"})
    assert response.status_code == 200
    body = response.json()
    assert [(link["title"], link["url"], link["active"]) for link in body["primary"]] == [
        ("Events", "/admin/events/", False),
        ("Articles", "/admin/articles/", True),
    ]
    assert body["active"] == "Articles"
    assert body["secondary"] == []
