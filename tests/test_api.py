from fastapi.testclient import TestClient

from Equations.equation import parse
from main import app, normalize_expression

client = TestClient(app)


class TestHealth:
    def test_ping(self):
        response = client.get("/ping")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_uptime(self):
        assert client.get("/uptime").json() == {"status": "alive"}


class TestNormalize:
    def test_symbols(self):
        assert normalize_expression("xi**2×2·mi") == "xi^2*2*mi"
        assert normalize_expression("φ(i-1)") == "phi(i-1)"
        assert normalize_expression("") == ""


class TestParseEndpoint:
    def test_parse(self):
        response = client.post("/parse", json={"expression": "2*xi"})

        assert response.status_code == 200
        assert response.json() == {"equation": "2*xi", "tokens": 3}

    def test_malformed(self):
        response = client.post("/parse", json={"expression": "xi+"})
        assert response.status_code == 422

    def test_unknown_symbol(self):
        response = client.post("/parse", json={"expression": "yi+1"})
        assert response.status_code == 422


class TestEvaluateEndpoint:
    def test_evaluate(self):
        response = client.post("/evaluate", json={"expression": "2*xi^2", "parameter": 3})

        assert response.status_code == 200
        assert response.json()["value"] == 18.0

    def test_division_by_zero(self):
        response = client.post("/evaluate", json={"expression": "1/(xi-mi)", "parameter": 1})
        assert response.status_code == 422

    def test_overflow(self):
        response = client.post("/evaluate", json={"expression": "xi*xi", "parameter": 1e200})
        assert response.status_code == 422


class TestDerivativeEndpoint:
    def test_derivative(self):
        response = client.post("/derivative", json={"expression": "xi^2", "variable": "xi"})
        body = response.json()

        assert response.status_code == 200
        assert body["equation"] == "xi^2"
        assert body["derivative"] == "2*xi"
        assert body["is_zero"] is False

    def test_zero_derivative(self):
        body = client.post("/derivative", json={"expression": "1"}).json()

        assert body["derivative"] is None
        assert body["is_zero"] is True

    def test_normalized_input(self):
        body = client.post("/derivative", json={"expression": "xi**2"}).json()
        assert body["derivative"] == "2*xi"

    def test_variable_exponent(self):
        response = client.post("/derivative", json={"expression": "xi^mi", "variable": "xi"})
        assert response.status_code == 422

    def test_unknown_variable(self):
        response = client.post("/derivative", json={"expression": "xi", "variable": "zz"})
        assert response.status_code == 422

    def test_negative_depth(self):
        response = client.post("/derivative", json={"expression": "xi", "depth": -1})
        assert response.status_code == 422


class TestDerivativeStream:
    def test_complete(self):
        response = client.get("/derivative_stream", params={"expression": "xi^2", "variable": "xi"})

        assert response.status_code == 200
        assert '"type": "complete"' in response.text
        assert '"derivative": "2*xi"' in response.text

    def test_error_event(self):
        response = client.get("/derivative_stream", params={"expression": "xi^mi", "variable": "xi"})

        assert '"type": "error"' in response.text

    def test_negative_depth(self):
        response = client.get("/derivative_stream", params={"expression": "xi", "depth": -1})
        assert response.status_code == 422


class TestIterateEndpoint:
    def test_separate_parameters(self):
        response = client.post("/iterate", json={"iterations": 1, "parameter": "m"})
        body = response.json()

        assert response.status_code == 200
        assert body["shared_parameters"] is False
        assert [d["parameter"] for d in body["derivatives"]] == ["mi", "m(i-1)"]

    def test_shared_parameters(self):
        body = client.post("/iterate", json={"iterations": 2, "parameter": "d",
                                             "shared_parameters": True}).json()
        assert len(body["steps"]) == 2

    def test_too_many_iterations(self):
        response = client.post("/iterate", json={"iterations": 99})
        assert response.status_code == 422


class TestGenerateEndpoint:
    def test_generated_expression_parses(self):
        response = client.post("/generate", json={"num_terms": 2, "max_depth": 2, "variables": ["xi", "mi"]})

        assert response.status_code == 200
        parse(response.json()["expression_string"])
