"""
Tests for the serialization module.
"""

import csv
import json

from retinaface_post.serializer import save_csv, save_json


def test_save_json_schema(tmp_path, make_detection):
    """Test the JSON export layout and totals."""
    results = {
        "b.jpg": [make_detection(0.9, 0, 0, 10, 10), make_detection(0.8, 50, 50, 10, 10)],
        "a.jpg": [],
    }
    path = tmp_path / "out" / "detections.json"

    save_json(results, str(path))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["total_frames"] == 2
    assert payload["total_detections"] == 2
    assert [f["frame_id"] for f in payload["frames"]] == ["a.jpg", "b.jpg"]
    face = payload["frames"][1]["detections"][0]
    assert set(face) == {"score", "quality", "bounds", "landmarks", "angle"}
    assert face["bounds"] == {"x": 0, "y": 0, "width": 10, "height": 10}


def test_save_csv_rows(tmp_path, make_detection):
    """Test one CSV row per face with landmark columns."""
    results = {"img.png": [make_detection(0.9, 0, 0, 10, 10), make_detection(0.7, 30, 0, 10, 10)]}
    path = tmp_path / "detections.csv"

    save_csv(results, str(path))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert len(rows) == 2
    assert rows[0]["frame_id"] == "img.png"
    assert float(rows[1]["x"]) == 30
    assert float(rows[0]["nose_tip_x"]) == 5
    assert "mouth_right_y" in rows[0]
