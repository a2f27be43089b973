from unittest.mock import MagicMock, patch

import pytest
import requests

from relay import DEFAULT_STRATEGIES, RelayStrategy, TransportError, fetch_via_relays

_RAW = RelayStrategy("raw", lambda u: f"https://raw.example/?u={u}")
_WRAPPED = RelayStrategy("wrapped", lambda u: f"https://wrap.example/?u={u}", wraps_json=True)
_BACKUP = RelayStrategy("backup", lambda u: f"https://backup.example/?u={u}")


def _text_resp(text: str) -> MagicMock:
    mock = MagicMock()
    mock.text = text
    return mock


def _json_resp(payload: object) -> MagicMock:
    mock = MagicMock()
    mock.json.return_value = payload
    return mock


def _error_resp(status: int) -> MagicMock:
    mock = MagicMock()
    mock.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return mock


def test_first_successful_strategy_wins() -> None:
    with patch("relay.requests.get", return_value=_text_resp("<feed/>")) as mock_get:
        body = fetch_via_relays("https://arxiv.org/list/cs.AI/new", strategies=(_RAW, _BACKUP))

    assert body == "<feed/>"
    assert mock_get.call_count == 1
    assert mock_get.call_args.args[0].startswith("https://raw.example/")


def test_json_envelope_is_unwrapped() -> None:
    with patch("relay.requests.get", return_value=_json_resp({"contents": "<html/>"})):
        body = fetch_via_relays("https://arxiv.org", strategies=(_WRAPPED,))

    assert body == "<html/>"


def test_falls_through_errors_and_empty_bodies() -> None:
    responses = [
        requests.ConnectionError("refused"),
        _json_resp({"contents": ""}),
        _text_resp("body"),
    ]
    with patch("relay.requests.get", side_effect=responses) as mock_get:
        body = fetch_via_relays("https://arxiv.org", strategies=(_RAW, _WRAPPED, _BACKUP))

    assert body == "body"
    assert mock_get.call_count == 3


def test_error_status_moves_to_next_strategy() -> None:
    with patch("relay.requests.get", side_effect=[_error_resp(503), _text_resp("ok")]):
        assert fetch_via_relays("https://arxiv.org", strategies=(_RAW, _BACKUP)) == "ok"


def test_all_strategies_failing_raises_transport_error() -> None:
    with patch("relay.requests.get", side_effect=requests.Timeout("slow")):
        with pytest.raises(TransportError, match="All relay strategies failed"):
            fetch_via_relays("https://arxiv.org", strategies=(_RAW, _BACKUP))


def test_default_strategies_try_direct_first_and_include_an_envelope() -> None:
    assert DEFAULT_STRATEGIES[0].name == "direct"
    assert DEFAULT_STRATEGIES[0].build_url("https://arxiv.org/x") == "https://arxiv.org/x"
    assert any(strategy.wraps_json for strategy in DEFAULT_STRATEGIES)
    wrapped = next(s for s in DEFAULT_STRATEGIES if s.wraps_json)
    assert "https%3A%2F%2Farxiv.org%2Fx" in wrapped.build_url("https://arxiv.org/x")
