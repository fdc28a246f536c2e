import asyncio
import unittest

from converter.sse import iter_sse_data


async def _chunks(parts):
    for part in parts:
        yield part


def _collect(parts) -> list[str]:
    async def run() -> list[str]:
        return [record async for record in iter_sse_data(_chunks(parts))]

    return asyncio.run(run())


class SseDecoderTests(unittest.TestCase):
    def test_yields_data_records_in_order(self) -> None:
        records = _collect(['data: {"a":1}\n\ndata: {"b":2}\n\n'])
        self.assertEqual(records, ['{"a":1}', '{"b":2}'])

    def test_record_split_across_chunks(self) -> None:
        records = _collect(["da", 'ta: {"a"', ":1}", "\n", 'data: {"b":2}\n'])
        self.assertEqual(records, ['{"a":1}', '{"b":2}'])

    def test_skips_comments_events_and_blank_lines(self) -> None:
        records = _collect(
            [
                ": OPENROUTER PROCESSING\n",
                "event: message\n",
                "\n",
                "id: 7\n",
                'data: {"ok":true}\r\n',
            ]
        )
        self.assertEqual(records, ['{"ok":true}'])

    def test_done_stops_the_sequence(self) -> None:
        records = _collect(['data: {"a":1}\n', "data: [DONE]\n", 'data: {"late":1}\n'])
        self.assertEqual(records, ['{"a":1}'])

    def test_unterminated_final_line_is_flushed(self) -> None:
        records = _collect(['data: {"a":1}\n', 'data: {"tail":true}'])
        self.assertEqual(records, ['{"a":1}', '{"tail":true}'])

    def test_multibyte_character_split_between_byte_chunks(self) -> None:
        encoded = 'data: {"t":"é✓"}\n'.encode("utf-8")
        split_at = encoded.index("é".encode("utf-8")) + 1
        records = _collect([encoded[:split_at], encoded[split_at:]])
        self.assertEqual(records, ['{"t":"é✓"}'])

    def test_payload_is_stripped(self) -> None:
        self.assertEqual(_collect(["data:  [1]  \n"]), ["[1]"])
        self.assertEqual(_collect(["data:[1]\n"]), [])


if __name__ == "__main__":
    unittest.main()
