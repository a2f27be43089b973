from unittest.mock import MagicMock, patch

from anthropic_client import claude_chat


def test_claude_chat_moves_system_message_to_system_param() -> None:
    mock_block = MagicMock()
    mock_block.text = '{"innovations": "x"}'
    mock_client = MagicMock()
    mock_client.messages.create.return_value.content = [mock_block]

    with patch("anthropic_client.anthropic.Anthropic", return_value=mock_client) as mock_cls:
        reply = claude_chat(
            [
                {"role": "system", "content": "Be terse."},
                {"role": "user", "content": "Analyze this."},
            ],
            api_key="sk-ant",
            model="claude-sonnet-4-5",
            max_tokens=256,
            timeout=12.0,
        )

    assert reply == '{"innovations": "x"}'
    assert mock_cls.call_args.kwargs == {"api_key": "sk-ant", "timeout": 12.0, "max_retries": 0}
    kwargs = mock_client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Be terse."
    assert kwargs["messages"] == [{"role": "user", "content": "Analyze this."}]
    assert kwargs["max_tokens"] == 256
