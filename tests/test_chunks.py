"""Test classification of stream chunks"""

import io
import unittest
from contextlib import redirect_stdout

from pipeloop.pipes.chunks import (
    ContentChunk,
    ToolCallChunk,
    UnknownChunk,
    get_text_content,
    get_text_delta,
    is_content,
    is_tool_call,
    is_unknown,
    print_stream_to_stdout,
    process_chunk,
)
from pipeloop.pipes.messages import ChunkStream

from helpers import content_chunk, finish_chunk, iterate, tool_call_chunk


def mixed_chunk() -> ChunkStream:
    return ChunkStream.model_validate(
        {
            'choices': [
                {
                    'index': 0,
                    'delta': {
                        'content': "Checking",
                        'tool_calls': [
                            {
                                'index': 0,
                                'id': "call_1",
                                'function': {'name': "get_weather"},
                            }
                        ],
                    },
                }
            ]
        }
    )


class TestProcessChunk(unittest.TestCase):

    def test_content(self):
        chunk = process_chunk(content_chunk("Hello"))
        self.assertIsInstance(chunk, ContentChunk)
        self.assertTrue(is_content(chunk))
        self.assertEqual(chunk.content, "Hello")

    def test_tool_call(self):
        chunk = process_chunk(
            tool_call_chunk(0, "call_1", "get_weather", '{"ci')
        )
        self.assertIsInstance(chunk, ToolCallChunk)
        self.assertTrue(is_tool_call(chunk))
        self.assertEqual(chunk.tool_call.id, "call_1")
        self.assertEqual(chunk.tool_call.function.name, "get_weather")
        self.assertEqual(chunk.tool_call.function.arguments, '{"ci')

    def test_content_takes_precedence(self):
        chunk = process_chunk(mixed_chunk())
        self.assertTrue(is_content(chunk))
        self.assertEqual(chunk.content, "Checking")

    def test_first_tool_call_only(self):
        raw = ChunkStream.model_validate(
            {
                'choices': [
                    {
                        'delta': {
                            'tool_calls': [
                                {'index': 0, 'id': "a"},
                                {'index': 1, 'id': "b"},
                            ]
                        }
                    }
                ]
            }
        )
        chunk = process_chunk(raw)
        self.assertTrue(is_tool_call(chunk))
        self.assertEqual(chunk.tool_call.id, "a")

    def test_unknown_keeps_raw_chunk(self):
        raw = finish_chunk()
        chunk = process_chunk(raw)
        self.assertIsInstance(chunk, UnknownChunk)
        self.assertTrue(is_unknown(chunk))
        self.assertIs(chunk.raw_chunk, raw)

    def test_empty_content_is_unknown(self):
        raw = content_chunk("")
        self.assertTrue(is_unknown(process_chunk(raw)))

    def test_no_choices_is_unknown(self):
        raw = ChunkStream(id="x")
        chunk = process_chunk(raw)
        self.assertTrue(is_unknown(chunk))
        self.assertIs(chunk.raw_chunk, raw)

    def test_dictionary_input(self):
        raw = {'choices': [{'delta': {'content': "Hi"}}]}
        self.assertEqual(process_chunk(raw).content, "Hi")

        raw = {'choices': [{'delta': {'role': "assistant"}}]}
        chunk = process_chunk(raw)
        self.assertTrue(is_unknown(chunk))
        self.assertIs(chunk.raw_chunk, raw)

    def test_null_fields(self):
        raw = {
            'id': None,
            'created': None,
            'choices': [
                {
                    'index': 0,
                    'delta': {
                        'content': None,
                        'tool_calls': [
                            {
                                'index': 0,
                                'id': None,
                                'type': None,
                                'function': {
                                    'name': None,
                                    'arguments': "{}",
                                },
                            }
                        ],
                    },
                }
            ],
        }
        chunk = process_chunk(raw)
        self.assertTrue(is_tool_call(chunk))
        self.assertEqual(chunk.tool_call.id, "")
        self.assertEqual(chunk.tool_call.function.name, "")
        self.assertEqual(chunk.tool_call.function.arguments, "{}")

        raw = {'id': None, 'choices': []}
        chunk = process_chunk(raw)
        self.assertTrue(is_unknown(chunk))
        self.assertIs(chunk.raw_chunk, raw)

    def test_invalid_units_are_unknown(self):
        for raw in (
            {'choices': "not a list"},
            {'choices': [{'delta': {'tool_calls': [{'index': "x"}]}}]},
            "data: [DONE]",
            None,
        ):
            chunk = process_chunk(raw)
            self.assertTrue(is_unknown(chunk))
            self.assertIs(chunk.raw_chunk, raw)
            self.assertEqual(get_text_content(raw), "")

    def test_type_tags(self):
        self.assertEqual(process_chunk(content_chunk("a")).type, 'content')
        self.assertEqual(
            process_chunk(tool_call_chunk(0, "id")).type, 'toolCall'
        )
        self.assertEqual(process_chunk(finish_chunk()).type, 'unknown')


class TestTextDelta(unittest.TestCase):

    def test_text(self):
        self.assertEqual(get_text_content(content_chunk("abc")), "abc")
        self.assertEqual(get_text_delta(content_chunk("abc")), "abc")

    def test_no_text(self):
        self.assertEqual(get_text_delta(finish_chunk()), "")
        self.assertEqual(get_text_delta(tool_call_chunk(0, "id")), "")
        self.assertEqual(get_text_content(ChunkStream()), "")


class TestPrintStream(unittest.IsolatedAsyncioTestCase):

    async def test_print_stream_to_stdout(self):
        chunks = [
            content_chunk("Hello"),
            tool_call_chunk(0, "id"),
            content_chunk(", world"),
            finish_chunk(),
        ]
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            await print_stream_to_stdout(iterate(chunks))
        self.assertEqual(buffer.getvalue(), "Hello, world")


if __name__ == "__main__":
    unittest.main()
