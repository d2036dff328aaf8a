"""Route builders for the service's REST endpoints.

Each helper returns a path relative to the API root, with identifiers filled
in and reaction emoji percent-encoded. Paths are what :class:`Request` and
:func:`RestGate.ratelimit.keys.bucket_key` consume.

Example:
    >>> channel_messages(1234)
    '/channels/1234/messages'
    >>> channel_reaction_me(1, 2, "\N{THUMBS UP SIGN}")
    '/channels/1/messages/2/reactions/%F0%9F%91%8D/@me'
"""

from __future__ import annotations

from typing import Union
from urllib.parse import quote

Snowflake = Union[int, str]


def _emoji(emoji: str) -> str:
    # custom emoji are passed as ``name:id``; the colon must survive
    return quote(emoji, safe=":")


# -- channels ---------------------------------------------------------------


def channel(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}"


def channel_messages(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}/messages"


def channel_message(channel_id: Snowflake, message_id: Snowflake) -> str:
    return f"/channels/{channel_id}/messages/{message_id}"


def channel_bulk_delete(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}/messages/bulk-delete"


def channel_reactions_get(channel_id: Snowflake, message_id: Snowflake, emoji: str) -> str:
    return f"/channels/{channel_id}/messages/{message_id}/reactions/{_emoji(emoji)}"


def channel_reaction_me(channel_id: Snowflake, message_id: Snowflake, emoji: str) -> str:
    return f"{channel_reactions_get(channel_id, message_id, emoji)}/@me"


def channel_reaction(
    channel_id: Snowflake, message_id: Snowflake, emoji: str, user_id: Snowflake
) -> str:
    return f"{channel_reactions_get(channel_id, message_id, emoji)}/{user_id}"


def channel_reactions_delete(channel_id: Snowflake, message_id: Snowflake) -> str:
    return f"/channels/{channel_id}/messages/{message_id}/reactions"


def channel_permission(channel_id: Snowflake, overwrite_id: Snowflake) -> str:
    return f"/channels/{channel_id}/permissions/{overwrite_id}"


def channel_invites(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}/invites"


def channel_typing(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}/typing"


def channel_pins(channel_id: Snowflake) -> str:
    return f"/channels/{channel_id}/pins"


def channel_pin(channel_id: Snowflake, message_id: Snowflake) -> str:
    return f"/channels/{channel_id}/pins/{message_id}"


# -- guilds -----------------------------------------------------------------


def guild(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}"


def guild_channels(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/channels"


def guild_members(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/members"


def guild_member(guild_id: Snowflake, user_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/members/{user_id}"


def guild_bans(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/bans"


def guild_ban(guild_id: Snowflake, user_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/bans/{user_id}"


def guild_roles(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/roles"


def guild_role(guild_id: Snowflake, role_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/roles/{role_id}"


def guild_prune(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/prune"


def guild_voice_regions(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/regions"


def guild_invites(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/invites"


def guild_integrations(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/integrations"


def guild_integration(guild_id: Snowflake, integration_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/integrations/{integration_id}"


def guild_integration_sync(guild_id: Snowflake, integration_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/integrations/{integration_id}/sync"


def guild_embed(guild_id: Snowflake) -> str:
    return f"/guilds/{guild_id}/embed"


# -- webhooks ---------------------------------------------------------------


def webhook(webhook_id: Snowflake, token: str | None = None) -> str:
    if token is None:
        return f"/webhooks/{webhook_id}"
    return f"/webhooks/{webhook_id}/{token}"


def webhook_message(webhook_id: Snowflake, token: str, message_id: Snowflake) -> str:
    return f"/webhooks/{webhook_id}/{token}/messages/{message_id}"


# -- invites, users, misc ---------------------------------------------------


def invite(invite_code: str) -> str:
    return f"/invites/{invite_code}"


def user(user_id: Snowflake) -> str:
    return f"/users/{user_id}"


ME = "/users/@me"
ME_GUILDS = "/users/@me/guilds"
ME_CHANNELS = "/users/@me/channels"
ME_CONNECTIONS = "/users/@me/connections"
REGIONS = "/voice/regions"


def me_guild(guild_id: Snowflake) -> str:
    return f"{ME_GUILDS}/{guild_id}"
