"""Recipient parsing for Harmony assistant messages."""

FUNCTIONS_PREFIX = "functions."
CONSTRAIN_MARKER = "<|constrain|>"
CHANNEL_MARKER = "<|channel|>"


def parse_tool_recipient(recipient: str | None) -> str | None:
    """
    Extract the tool name from a message recipient.

    ``functions.<name>`` and ``<|constrain|><name>`` address a tool; anything
    from an embedded ``<|channel|>`` marker onward is not part of the name.
    Returns None when the message is not a tool call.

    >>> parse_tool_recipient("functions.bash")
    'bash'
    >>> parse_tool_recipient("functions.bash<|channel|>commentary")
    'bash'
    >>> parse_tool_recipient("assistant") is None
    True
    """
    if not recipient:
        return None
    recipient = recipient.strip()
    for prefix in (FUNCTIONS_PREFIX, CONSTRAIN_MARKER):
        if recipient.startswith(prefix):
            name = recipient[len(prefix):]
            if name.startswith(FUNCTIONS_PREFIX):
                name = name[len(FUNCTIONS_PREFIX):]
            name = name.split(CHANNEL_MARKER, 1)[0].strip()
            return name or None
    return None
