import pytest

from cortex.provider import ChatMessage, FunctionCall, ToolCall
from cortex.tokencount import (
    estimate_content_tokens,
    estimate_string_tokens,
    estimate_tokens,
)


def test_empty_messages():
    assert 1 <= estimate_tokens(None) <= 5
    assert 1 <= estimate_tokens([]) <= 5


def test_simple_english():
    assert 8 <= estimate_tokens([ChatMessage("user", "Hello, world!")]) <= 16


def test_long_english():
    paragraph = (
        "The quick brown fox jumps over the lazy dog. "
        "Every morning the baker opens the shop before sunrise and lights the old stone oven. "
        "Fresh loaves of bread cool on wooden racks while the first customers wait outside in the cold. "
        "Children walk past on their way to school and wave at the baker through the foggy window. "
        "By noon most of the shelves are empty, and the baker sweeps the floor and counts the coins. "
        "In the afternoon she plans the recipes for the next day and writes a list of flour, butter, sugar, and salt."
    )
    assert 80 <= estimate_tokens([ChatMessage("user", paragraph)]) <= 180


def test_cjk():
    count = estimate_tokens([ChatMessage("user", "你好世界")])
    assert 8 <= count <= 18
    english = estimate_tokens([ChatMessage("user", "abcd")])
    assert count - 7 >= english - 7


def test_code():
    code = 'func main() { fmt.Println("hello") }'
    assert 10 <= estimate_tokens([ChatMessage("user", code)]) <= 30


def test_mixed_content():
    msgs = [
        ChatMessage("system", "You are a helpful assistant."),
        ChatMessage("user", "What is the capital of France?"),
    ]
    assert 18 <= estimate_tokens(msgs) <= 40


def test_tool_calls_add_tokens():
    with_tools = [
        ChatMessage(
            "assistant",
            "Let me search for that.",
            tool_calls=[
                ToolCall(
                    id="call_123",
                    function=FunctionCall("search", '{"query": "capital of France"}'),
                )
            ],
        )
    ]
    count = estimate_tokens(with_tools)
    assert 15 <= count <= 45
    assert count > estimate_tokens([ChatMessage("assistant", "Let me search for that.")])


def test_non_string_content():
    msgs = [ChatMessage("user", {"type": "text", "text": "Hello, world!"})]
    assert 8 <= estimate_tokens(msgs) <= 30


def test_nil_content():
    assert 5 <= estimate_tokens([ChatMessage("assistant", None)]) <= 10


def test_empty_string_content():
    assert 5 <= estimate_tokens([ChatMessage("user", "")]) <= 10


def test_whitespace_heavy():
    content = "  \n  \t  " * 20 + "hello"
    assert 7 <= estimate_tokens([ChatMessage("user", content)]) <= 60


def test_openai_count_cases():
    assert estimate_tokens(None) >= 1
    assert estimate_tokens([ChatMessage("user", "Hello, world!")]) >= 9
    msgs = [
        ChatMessage(
            "assistant",
            "Sure",
            tool_calls=[ToolCall(id="tc1", function=FunctionCall("read_file", '{"path":"/tmp/x"}'))],
        )
    ]
    assert estimate_tokens(msgs) >= 10


@pytest.mark.parametrize(
    "text,low,high",
    [
        ("", 0, 0),
        ("a", 1, 1),
        ("你", 1, 2),
        ("1234567890", 1, 5),
        ("!@#$%^&*()", 1, 10),
        ("Hello你好World世界", 3, 12),
    ],
)
def test_estimate_string_tokens_edge_cases(text, low, high):
    assert low <= estimate_string_tokens(text) <= high


def test_content_tokens_none_and_string():
    assert estimate_content_tokens(None) == 0
    assert estimate_content_tokens("abc def") == estimate_string_tokens("abc def")


def test_content_tokens_map_matches_json_text():
    content = {"type": "text", "text": "hi"}
    assert estimate_content_tokens(content) == estimate_string_tokens(
        '{"text":"hi","type":"text"}'
    )