"""Tests for bucket key derivation."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from RestGate import routes
from RestGate.ratelimit.keys import bucket_key, major_parameter, route_template

snowflakes = st.integers(min_value=1, max_value=2**63 - 1)


class TestRouteTemplate:
    """Normalisation of routes into rate-limit templates."""

    def test_major_parameter_kept_minor_ids_replaced(self):
        assert route_template("/channels/1234/messages/5678") == "/channels/1234/messages/{id}"

    def test_query_string_dropped(self):
        assert route_template("/channels/1/messages?limit=50&before=9") == "/channels/1/messages"

    def test_guild_member(self):
        assert route_template("/guilds/99/members/12") == "/guilds/99/members/{id}"

    def test_webhook_token_is_major(self):
        assert route_template("/webhooks/5/abc-token/messages/7") == "/webhooks/5/abc-token/messages/{id}"

    def test_reaction_emoji_collapsed(self):
        route = routes.channel_reaction_me(1, 2, "\N{THUMBS UP SIGN}")
        assert route_template(route) == "/channels/1/messages/{id}/reactions/{emoji}/@me"

    def test_invite_code_collapsed(self):
        assert route_template("/invites/abcDEF") == "/invites/{code}"

    def test_non_major_resource(self):
        assert route_template("/users/@me/guilds/42") == "/users/@me/guilds/{id}"

    def test_missing_leading_slash(self):
        assert route_template("channels/1/typing") == "/channels/1/typing"


class TestBucketKey:
    """Bucket key composition and stability."""

    def test_method_is_upper_cased(self):
        assert bucket_key("get", "/channels/1/messages") == "GET /channels/1/messages"

    def test_method_distinguishes_buckets(self):
        assert bucket_key("GET", "/channels/1/messages") != bucket_key("POST", "/channels/1/messages")

    def test_distinct_major_parameters_distinct_keys(self):
        assert bucket_key("POST", routes.channel_messages(1)) != bucket_key(
            "POST", routes.channel_messages(2)
        )

    @pytest.mark.parametrize(
        "route, expected",
        [
            ("/channels/1/messages", "channels/1"),
            ("/guilds/2/roles/3", "guilds/2"),
            ("/webhooks/4/tok", "webhooks/4/tok"),
            ("/users/@me", None),
            ("/channels", None),
        ],
    )
    def test_major_parameter(self, route, expected):
        assert major_parameter(route) == expected

    @given(channel=snowflakes, first=snowflakes, second=snowflakes)
    def test_minor_ids_share_a_key(self, channel, first, second):
        """Messages of one channel always share a key regardless of message id."""
        assert bucket_key("DELETE", routes.channel_message(channel, first)) == bucket_key(
            "DELETE", routes.channel_message(channel, second)
        )

    @given(channel=snowflakes, message=snowflakes)
    def test_key_is_deterministic(self, channel, message):
        route = routes.channel_message(channel, message)
        assert bucket_key("PATCH", route) == bucket_key("PATCH", route)
        assert bucket_key("PATCH", route).startswith(f"PATCH /channels/{channel}/")
