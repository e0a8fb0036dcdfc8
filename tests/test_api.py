"""
API tests for the mini IDE service.

These tests exercise the HTTP endpoints using FastAPI's TestClient against
an application built on a temporary directory.  C++ execution goes through
a scripted executor so no compiler is needed; Python snippets run in a
real child interpreter.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from miniide import __version__
from miniide.api.main import create_app
from miniide.executor import BackendRejected, ExecutionDispatcher, ExecutionOutcome, Language


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_register_login_logout(client):
    res = client.post("/api/register", json={"username": "bob", "password": "pw"})
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["username"] == "bob"
    register_token = data["token"]

    res = client.post("/api/login", json={"username": "bob", "password": "pw"})
    assert res.status_code == 200
    login_token = res.json()["token"]
    assert login_token != register_token

    res = client.post("/api/verify", json={"token": login_token})
    assert res.json() == {"valid": True}

    res = client.post("/api/logout", json={"token": login_token})
    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert client.post("/api/verify", json={"token": login_token}).json() == {"valid": False}
    # Logout of an unknown token still succeeds
    assert client.post("/api/logout", json={"token": "nope"}).json() == {"success": True}


def test_logout_without_body_succeeds(client, auth_token):
    res = client.post("/api/logout")
    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert client.post("/api/verify", json={"token": auth_token}).json() == {"valid": True}


def test_register_conflict(client):
    client.post("/api/register", json={"username": "bob", "password": "pw"})
    res = client.post("/api/register", json={"username": "bob", "password": "other"})
    assert res.status_code == 409
    assert res.json()["success"] is False


def test_register_missing_fields(client):
    res = client.post("/api/register", json={"username": "bob"})
    assert res.status_code == 400
    assert res.json()["success"] is False
    res = client.post("/api/register", json={"username": "", "password": "pw"})
    assert res.status_code == 400


def test_malformed_json_body(client):
    res = client.post(
        "/api/login",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert res.status_code == 400


def test_login_wrong_password_then_rate_limited(client):
    client.post("/api/register", json={"username": "bob", "password": "pw"})
    for _ in range(5):
        res = client.post("/api/login", json={"username": "bob", "password": "wrong"})
        assert res.status_code == 401
    res = client.post("/api/login", json={"username": "bob", "password": "pw"})
    assert res.status_code == 429
    assert "Retry-After" in res.headers
    assert res.json()["success"] is False


def test_save_read_list_delete(client, auth_token, config):
    code = '#include <iostream>\nint main() { std::cout << "hi"; }\n'
    res = client.post(
        "/api/save",
        json={"filename": "a.cpp", "code": code, "language": "cpp", "token": auth_token},
    )
    assert res.status_code == 200
    assert res.json()["success"] is True

    res = client.get("/api/file/a.cpp")
    assert res.status_code == 200
    assert res.json() == {"name": "a.cpp", "code": code}

    listing = client.get("/api/files").json()
    assert [entry["name"] for entry in listing] == ["a.cpp"]
    assert listing[0]["size"] == len(code.encode())
    assert "modified" in listing[0]

    res = client.delete("/api/file/a.cpp", headers={"Authorization": f"Bearer {auth_token}"})
    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert client.get("/api/file/a.cpp").status_code == 404


def test_save_requires_token(client):
    res = client.post("/api/save", json={"filename": "a.cpp", "code": "x"})
    assert res.status_code == 401
    res = client.post("/api/save", json={"filename": "a.cpp", "code": "x", "token": "bogus"})
    assert res.status_code == 401


def test_save_rejects_bad_input(client, auth_token):
    res = client.post("/api/save", json={"filename": "a.txt", "code": "x", "token": auth_token})
    assert res.status_code == 400
    res = client.post("/api/save", json={"filename": "a.cpp", "code": "", "token": auth_token})
    assert res.status_code == 400


def test_save_path_traversal_stays_in_storage(client, auth_token, config, tmp_path):
    res = client.post(
        "/api/save",
        json={"filename": "../../etc/passwd.cpp", "code": "x", "token": auth_token},
    )
    assert res.status_code == 200
    assert (tmp_path / "saved-files" / "passwd.cpp").read_text() == "x"
    assert not (tmp_path.parent / "etc" / "passwd.cpp").exists()


def test_delete_requires_bearer_token(client, auth_token):
    client.post("/api/save", json={"filename": "a.py", "code": "print(1)", "token": auth_token})
    assert client.delete("/api/file/a.py").status_code == 401
    assert client.delete("/api/file/a.py", headers={"Authorization": "Bearer bogus"}).status_code == 401
    res = client.delete("/api/file/missing.py", headers={"Authorization": f"Bearer {auth_token}"})
    assert res.status_code == 404


def test_execute_python(client):
    res = client.post(
        "/api/execute",
        json={"language": "python", "code": "print(input() * 2)", "stdin": "ab\n"},
    )
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["stdout"] == "abab\n"
    assert data["code"] == 0
    assert data["timedOut"] is False
    assert "[System] Finished in" in data["output"]


def test_execute_python_error_is_reported(client):
    res = client.post("/api/execute", json={"language": "python", "code": "print('a')\n1/0"})
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is False
    assert "ZeroDivisionError" in data["error"]
    assert data["stdout"] == "a\n"


def test_execute_unknown_language(client):
    res = client.post("/api/execute", json={"language": "rust", "code": "fn main() {}"})
    assert res.status_code == 400


def test_compile_cpp_uses_configured_backend(config, scripted):
    executor = scripted(["Hello, World!\n"])
    app = create_app(config, dispatcher=ExecutionDispatcher({Language.CPP: executor}))
    client = TestClient(app)
    res = client.post("/api/compile/cpp", json={"code": "int main(){}", "stdin": "42"})
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["run"]["stdout"] == "Hello, World!\n"
    assert data["run"]["code"] == 0
    assert "Process exited" not in data["output"]
    assert executor.calls == [("int main(){}", "42")]


def test_compile_cpp_backend_failure(config, scripted):
    executor = scripted([], error=BackendRejected("runtime is unknown"))
    app = create_app(config, dispatcher=ExecutionDispatcher({Language.CPP: executor}))
    data = TestClient(app).post("/api/compile/cpp", json={"code": "x"}).json()
    assert data["success"] is False
    assert data["error"] == "runtime is unknown"
    assert data["output"].strip() == "[Error] runtime is unknown"


def test_compile_cpp_nonzero_exit(config, scripted):
    outcome = ExecutionOutcome(stdout="", stderr="boom", exit_code=3)
    executor = scripted(["\n[Stderr]\nboom"], outcome=outcome)
    app = create_app(config, dispatcher=ExecutionDispatcher({Language.CPP: executor}))
    data = TestClient(app).post("/api/compile/cpp", json={"code": "x"}).json()
    assert data["success"] is False
    assert data["code"] == 3
    assert "[System] Process exited with code 3" in data["output"]
