import pytest

from bonus_watch.commands import Action, Command, parse_command
from bonus_watch.errors import InvalidCommand


def test_parse_subscribe():
    assert parse_command("!ah subscribe 42", "chan-a") == Command(Action.SUBSCRIBE, 42, "chan-a")


def test_parse_is_case_insensitive_on_action_and_tolerates_spaces():
    assert parse_command("  !ah   INFO  7 ", "chan-a") == Command(Action.INFO, 7, "chan-a")


@pytest.mark.parametrize("text", ["", "hello", "!other subscribe 42", "!ahsubscribe 42"])
def test_other_messages_are_ignored(text):
    assert parse_command(text, "chan-a") is None


@pytest.mark.parametrize("text", ["!ah", "!ah subscribe", "!ah subscribe abc", "!ah subscribe -3", "!ah buy 42"])
def test_bad_commands(text):
    with pytest.raises(InvalidCommand):
        parse_command(text, "chan-a")
