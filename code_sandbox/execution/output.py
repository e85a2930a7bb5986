"""
Output capture helpers shared by both execution paths.
"""

from typing import List, Tuple, Union

TRUNCATION_NOTICE = "\n[output truncated]"

# Substrings that mark a line as error output when streams are combined
ERROR_MARKERS = ("Error:", "error:")


class OutputBuffer:
    """
    Size-capped byte accumulator for one output stream.

    Writes past the limit are dropped and the buffer is flagged as
    truncated; decoding happens once, at the end.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self.truncated = False
        self._chunks: List[bytes] = []
        self._size = 0

    def write(self, data: Union[bytes, str]) -> None:
        if not data:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")

        remaining = self.limit - self._size
        if remaining <= 0:
            self.truncated = True
            return
        if len(data) > remaining:
            data = data[:remaining]
            self.truncated = True

        self._chunks.append(data)
        self._size += len(data)

    def __len__(self) -> int:
        return self._size

    def getvalue(self) -> str:
        text = b"".join(self._chunks).decode("utf-8", errors="replace").rstrip()
        if self.truncated:
            text += TRUNCATION_NOTICE
        return text


def split_combined_output(output: str) -> Tuple[str, str]:
    """
    Best-effort split of a combined stdout/stderr stream.

    Lines containing an error marker are treated as stderr. Legitimate
    output that mentions "error:" is misclassified; this is only used when
    the runtime is not asked for separate streams.
    """
    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    for line in output.split("\n"):
        if any(marker in line for marker in ERROR_MARKERS):
            stderr_lines.append(line)
        else:
            stdout_lines.append(line)

    return "\n".join(stdout_lines).strip(), "\n".join(stderr_lines).strip()
