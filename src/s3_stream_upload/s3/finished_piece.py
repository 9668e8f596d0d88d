from dataclasses import dataclass


@dataclass(frozen=True)
class FinishedPiece:
    """Descriptor of one part stored by the remote multipart session."""

    part_number: int
    etag: str
    size: int

    def __post_init__(self):
        assert isinstance(self.part_number, int)
        assert isinstance(self.etag, str)
        assert 1 <= self.part_number <= 10000, f"Bad part number {self.part_number}"

    def to_json(self) -> dict:
        # amazon s3 style dict
        return {"PartNumber": self.part_number, "ETag": self.etag}

    @staticmethod
    def to_json_array(parts: list["FinishedPiece"]) -> list[dict]:
        ordered = sorted(parts, key=lambda p: p.part_number)
        return [p.to_json() for p in ordered]

