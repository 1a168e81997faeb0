import json

from rdpprovisioner.services.manifest import ManifestService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


def test_manifest_service_writes_run_metadata(tmp_path):
    manifest_file = tmp_path / "stack" / "run-manifest.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run("run-123", {"target_user": "ciuser", "guac_port": 8080})
    service.step_started("configure_firewall", "tolerated")
    service.step_finished("configure_firewall", "tolerated", error="ufw failed")
    service.set_outcome("gateway_url", "http://10.0.0.5:8080/guacamole/")
    service.add_artifact("compose_file", "/opt/guacamole/docker-compose.yml")
    service.finalize("success_with_warnings")

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["run_id"] == "run-123"
    assert data["status"] == "success_with_warnings"
    assert data["config"]["guac_port"] == 8080
    assert data["outcome"]["gateway_url"] == "http://10.0.0.5:8080/guacamole/"
    assert data["artifacts"]["compose_file"] == "/opt/guacamole/docker-compose.yml"
    assert data["steps"][0]["name"] == "configure_firewall"
    assert data["steps"][0]["policy"] == "tolerated"
    assert data["steps"][0]["error"] == "ufw failed"
    assert data["duration_seconds"] is not None
    assert list(manifest_file.parent.iterdir()) == [manifest_file]
