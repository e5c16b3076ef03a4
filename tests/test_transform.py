"""
Tests for record-to-CSV projection.
"""

import csv
import io

import pytest

from at2felt.domain.models import DEFAULT_FIELDS
from at2felt.pipeline.transform import CsvProjector, resolve_picture
from at2felt.types import SerializationError

from .conftest import make_record


def parse(text):
    return list(csv.reader(io.StringIO(text)))


class TestResolvePicture:
    """Tests for attachment URL resolution."""

    def test_prefers_large_thumbnail(self):
        value = [{"url": "https://dl.airtable.com/full.jpg",
                  "thumbnails": {"large": {"url": "X"}, "small": {"url": "S"}}}]
        assert resolve_picture(value) == "X"

    def test_falls_back_to_direct_url(self):
        value = [{"url": "Y", "thumbnails": {"small": {"url": "S"}}}]
        assert resolve_picture(value) == "Y"

    def test_direct_url_when_thumbnails_missing(self):
        assert resolve_picture([{"url": "Y"}]) == "Y"

    def test_uses_first_attachment_only(self):
        value = [{"url": "first"}, {"url": "second", "thumbnails": {"large": {"url": "L2"}}}]
        assert resolve_picture(value) == "first"

    def test_attachment_without_urls_is_empty(self):
        assert resolve_picture([{"filename": "poster.jpg"}]) is None

    def test_empty_list_is_empty(self):
        assert resolve_picture([]) is None

    def test_malformed_thumbnails_do_not_raise(self):
        assert resolve_picture([{"url": "Y", "thumbnails": "broken"}]) == "Y"
        assert resolve_picture([{"url": "Y", "thumbnails": {"large": None}}]) == "Y"

    def test_non_list_value_passes_through(self):
        assert resolve_picture("https://example.com/p.jpg") == "https://example.com/p.jpg"
        assert resolve_picture(None) is None


class TestCsvProjector:
    """Tests for CsvProjector rows and rendering."""

    def test_default_fields(self):
        assert CsvProjector().fields == ("Latitude", "Longitude", "Picture", "Submitted At")

    def test_requires_fields(self):
        with pytest.raises(ValueError):
            CsvProjector(fields=[])

    def test_project_row_in_field_order(self):
        record = make_record(
            **{"Submitted At": "2024-05-01T10:00:00.000Z", "Longitude": -122.4, "Latitude": 37.7,
               "Picture": [{"url": "Y"}], "Status": "Approved"}
        )
        assert CsvProjector().project_row(record) == (37.7, -122.4, "Y", "2024-05-01T10:00:00.000Z")

    def test_missing_fields_are_empty(self):
        record = make_record(Latitude=1.5)
        assert CsvProjector().project_row(record) == (1.5, None, None, None)

    def test_header_is_fixed_regardless_of_records(self):
        records = [make_record("rec1", Status="Approved", Extra="x")]
        document = CsvProjector().render(records)
        assert document.header == DEFAULT_FIELDS
        assert document.text.splitlines()[0] == "Latitude,Longitude,Picture,Submitted At"

    def test_row_count_and_order_match_records(self):
        records = [make_record(f"rec{i}", Latitude=i, Longitude=-i) for i in range(5)]
        document = CsvProjector().render(records)
        assert document.row_count == 5
        rows = parse(document.text)[1:]
        assert [row[0] for row in rows] == ["0", "1", "2", "3", "4"]
        assert [row[1] for row in rows] == ["0", "-1", "-2", "-3", "-4"]

    def test_integers_stay_integers_next_to_blanks(self):
        records = [make_record("rec1", Latitude=3), make_record("rec2")]
        rows = parse(CsvProjector().render(records).text)[1:]
        assert rows == [["3", "", "", ""], ["", "", "", ""]]

    def test_no_picture_field_renders_empty_cell(self):
        document = CsvProjector().render([make_record(Latitude=1.0, Longitude=2.0)])
        assert parse(document.text)[1] == ["1.0", "2.0", "", ""]

    def test_empty_records_render_header_only(self):
        document = CsvProjector().render([])
        assert document.row_count == 0
        assert document.text == "Latitude,Longitude,Picture,Submitted At\n"

    def test_round_trip_through_csv_reader(self):
        records = [
            make_record("rec1", Latitude=37.77, Longitude=-122.41,
                        Picture=[{"thumbnails": {"large": {"url": "https://t/large.jpg"}}}],
                        **{"Submitted At": "2024-05-01"}),
            make_record("rec2", Latitude=40.7, Longitude=-74.0,
                        Picture=[{"url": "https://x/a,b.jpg"}],
                        **{"Submitted At": 'He said "hi", then\nleft'}),
        ]
        document = CsvProjector().render(records)
        parsed = parse(document.text)
        assert tuple(parsed[0]) == document.header
        expected = [["" if v is None else str(v) for v in row] for row in document.rows]
        assert parsed[1:] == expected

    def test_quotes_special_characters(self):
        document = CsvProjector().render([make_record(**{"Submitted At": 'a "quoted", value'})])
        assert '"a ""quoted"", value"' in document.text

    def test_custom_fields_and_picture_field(self):
        projector = CsvProjector(fields=["Name", "Photo"], picture_field="Photo")
        document = projector.render([make_record(Name="Ana", Photo=[{"url": "P"}])])
        assert parse(document.text) == [["Name", "Photo"], ["Ana", "P"]]

    def test_project_returns_dataframe(self):
        df = CsvProjector().project([make_record(Latitude=1), make_record(Latitude=2)])
        assert list(df.columns) == list(DEFAULT_FIELDS)
        assert len(df) == 2


class TestCsvDocument:
    """Tests for CsvDocument encoding and persistence."""

    def test_write_creates_file(self, tmp_path):
        document = CsvProjector().render([make_record(Latitude=1)])
        path = document.write(tmp_path / "out" / "offerings.csv")
        assert path.read_text(encoding="utf-8") == document.text

    def test_unencodable_text_raises_serialization_error(self):
        with pytest.raises(SerializationError):
            CsvProjector().render([make_record(**{"Submitted At": "bad \ud800 surrogate"})])
