"""Streaming response handler"""

from typing import AsyncGenerator, AsyncIterator
import json

from mindscribe.inference.engine import InferenceError


class StreamHandler:
    """Relay chat fragments as server-sent events"""

    @staticmethod
    async def stream_fragments(
        fragments: AsyncIterator[str],
        session_id: str,
    ) -> AsyncGenerator[str, None]:
        """
        Wrap a fragment stream as SSE

        Yields SSE-formatted chunks, an error event if generation fails,
        then the [DONE] marker.
        """
        try:
            async for fragment in fragments:
                data = {
                    "session_id": session_id,
                    "content": fragment,
                }
                yield f"data: {json.dumps(data)}\n\n"
        except InferenceError as e:
            error_data = {
                "error": {
                    "message": str(e),
                    "type": "stream_error",
                }
            }
            yield f"data: {json.dumps(error_data)}\n\n"

        yield "data: [DONE]\n\n"
