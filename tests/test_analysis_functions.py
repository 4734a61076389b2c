from analysis_functions import build_marker_histogram, samples_to_frame, top_value_counts


def test_top_value_counts():
    df = top_value_counts(["AM", "", "AM", "DA", None, "AM"], limit=2)
    assert list(df.columns) == ["Value", "Count"]
    assert df.to_dict("records") == [{"Value": "AM", "Count": 3}, {"Value": "(blank)", "Count": 2}]


def test_marker_histogram_sorted_by_rows():
    df = build_marker_histogram({"X": 2, "": 5, "N": 1})
    assert list(df["Marker"]) == ["(blank)", "X", "N"]
    assert build_marker_histogram({}).empty


def test_samples_to_frame(make_person):
    df = samples_to_frame([make_person(is_present=True), make_person(employee_id="2", is_on_leave=True)])
    assert list(df["onPrem"]) == ["YES", "NO"]
    assert list(df["vac"]) == ["NO", "YES"]
    assert samples_to_frame([]).empty
