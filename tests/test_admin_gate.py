"""Admin gate — shared secret, per-transport capability tokens, command guard."""

import pytest

from core.admin_gate import AdminGate, PRIVILEGED_COMMANDS
from core.exceptions import Unauthorized


@pytest.fixture
def gate():
    return AdminGate("s3cret")


def test_authenticate_with_correct_secret_returns_capability(gate):
    capability = gate.authenticate("t1", "s3cret")

    assert capability is not None
    assert capability.transport_id == "t1"
    assert gate.has_capability("t1", capability.token)


def test_authenticate_with_wrong_secret_returns_none(gate):
    assert gate.authenticate("t1", "nope") is None
    assert gate.authenticate("t1", None) is None


def test_empty_secret_disables_admin():
    gate = AdminGate("")

    assert gate.authenticate("t1", "") is None
    assert gate.verify_secret("") is False


@pytest.mark.parametrize("command", sorted(PRIVILEGED_COMMANDS))
def test_guard_rejects_privileged_commands_without_token(gate, command):
    with pytest.raises(Unauthorized) as exc_info:
        gate.guard("t1", None, command)

    assert exc_info.value.reason == "UNAUTHORIZED"


@pytest.mark.parametrize("command", ["JOIN", "REQUEST_STATE", "START_DRAW"])
def test_guard_lets_open_commands_through(gate, command):
    gate.guard("t1", None, command)


def test_token_is_bound_to_its_transport(gate):
    capability = gate.authenticate("t1", "s3cret")

    gate.guard("t1", capability.token, "FULL_RESET")
    with pytest.raises(Unauthorized):
        gate.guard("t2", capability.token, "FULL_RESET")


def test_revoke_drops_capability(gate):
    capability = gate.authenticate("t1", "s3cret")

    gate.revoke("t1")

    with pytest.raises(Unauthorized):
        gate.guard("t1", capability.token, "NEW_ROUND")


def test_reauthentication_rotates_token(gate):
    first = gate.authenticate("t1", "s3cret")
    second = gate.authenticate("t1", "s3cret")

    assert first.token != second.token
    assert not gate.has_capability("t1", first.token)
    assert gate.has_capability("t1", second.token)
