import pytest

from core.exceptions import FrozenChainError, StageError
from core.middleware import MiddlewareChain, MiddlewareUnit, Slot


def _unit(name, slot):
    return MiddlewareUnit(name, slot, object())


def test_ordered_by_slot_regardless_of_insertion():
    chain = MiddlewareChain()
    chain.add(_unit("static", Slot.STATIC))
    chain.add(_unit("plugin-a", Slot.PLUGIN))
    chain.add(_unit("body", Slot.BODY))
    chain.add(_unit("plugin-b", Slot.PLUGIN))
    chain.add(_unit("response-time", Slot.RESPONSE_TIME))
    assert chain.names() == [
        "response-time",
        "body",
        "plugin-a",
        "plugin-b",
        "static",
    ]
    assert len(chain) == 5
    assert "body" in chain
    assert chain.get("plugin-b").slot is Slot.PLUGIN
    assert chain.get("missing") is None


def test_duplicate_name_rejected():
    chain = MiddlewareChain()
    chain.add(_unit("body", Slot.BODY))
    with pytest.raises(ValueError):
        chain.add(_unit("body", Slot.BODY))


def test_frozen_chain_rejects_additions():
    chain = MiddlewareChain()
    chain.add(_unit("logger", Slot.LOGGER))
    chain.freeze()
    assert chain.frozen
    with pytest.raises(FrozenChainError) as exc:
        chain.add(_unit("late", Slot.PLUGIN))
    assert isinstance(exc.value, StageError)
    assert exc.value.error_type == "chain-frozen"
    assert chain.names() == ["logger"]
