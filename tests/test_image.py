"""Tests for rbdqemu.image module."""

from __future__ import annotations

from dataclasses import replace

import pytest

from rbdqemu.exceptions import RemoteStderrFault, TransportFault, UnsupportedOperation
from rbdqemu.image import ImageController

CEPH_ADMIN = "192.168.10.20"
QEMU_IMG = "/usr/local/packages/qemu-4.1.0/bin/qemu-img"


@pytest.fixture
def controller(cluster_config, fake_cluster):
    return ImageController(cluster_config, fake_cluster)


class TestCreate:
    def test_reference_scenario(self, controller, fake_cluster, image_data):
        outcome = controller.create(image_data)

        assert outcome.is_created
        assert outcome.identifier == "rbd/helloImg"
        assert image_data.id == "rbd/helloImg"
        assert fake_cluster.calls[0] == (
            CEPH_ADMIN,
            "rbd create --pool rbd --image helloImg --size 6M && "
            "rbd feature disable rbd/helloImg object-map fast-diff deep-flatten",
        )
        assert fake_cluster.calls[-1] == (
            "192.168.3.101",
            f"{QEMU_IMG} create -f rbd rbd:rbd/helloImg:id=admin 6M",
        )

    def test_created_image_exists(self, controller, image_data):
        controller.create(image_data)
        assert controller.exists(image_data) is True

    def test_primary_stderr_leaves_id_unset(self, controller, fake_cluster, image_data):
        fake_cluster.fail("rbd create", stderr="rbd: create error: (1) Operation not permitted")
        with pytest.raises(RemoteStderrFault, match="Operation not permitted"):
            controller.create(image_data)
        assert image_data.id == ""
        assert len(fake_cluster.calls) == 1

    def test_primary_transport_fault_leaves_id_unset(self, controller, fake_cluster, image_data):
        fake_cluster.unreachable.add(CEPH_ADMIN)
        with pytest.raises(TransportFault):
            controller.create(image_data)
        assert image_data.id == ""

    def test_existing_image_is_a_failure(self, controller, fake_cluster, image_data):
        fake_cluster.volumes["rbd"] = {"helloImg"}
        with pytest.raises(RemoteStderrFault, match="File exists"):
            controller.create(image_data)
        assert image_data.id == ""

    def test_qemu_img_failure_keeps_id(self, controller, fake_cluster, image_data):
        fake_cluster.fail("qemu-img create", stderr="qemu-img: rbd: error connecting")
        with pytest.raises(RemoteStderrFault, match="error connecting"):
            controller.create(image_data)
        assert image_data.id == "rbd/helloImg"
        assert "helloImg" in fake_cluster.volumes["rbd"]

    def test_qemu_img_transport_fault_keeps_id(self, controller, fake_cluster, image_data):
        fake_cluster.fail("qemu-img create", fault=True)
        with pytest.raises(TransportFault):
            controller.create(image_data)
        assert image_data.id == "rbd/helloImg"

    def test_no_hypervisor_skips_qemu_img(self, controller, fake_cluster, image_data):
        fake_cluster.memory_kb = {}
        outcome = controller.create(image_data)
        assert outcome.identifier == "rbd/helloImg"
        assert not any("qemu-img" in cmd for cmd in fake_cluster.commands())

    def test_uses_configured_rbd_user(self, cluster_config, fake_cluster, image_data):
        controller = ImageController(replace(cluster_config, rbd_user="libvirt"), fake_cluster)
        controller.create(image_data)
        assert ":id=libvirt 6M" in fake_cluster.calls[-1][1]


class TestRead:
    def test_present_sets_id(self, controller, fake_cluster, image_data):
        fake_cluster.volumes["rbd"] = {"helloImg"}
        assert controller.read(image_data) == "rbd/helloImg"
        assert image_data.id == "rbd/helloImg"

    def test_absent_clears_id(self, controller, image_data):
        image_data.set_id("rbd/helloImg")
        assert controller.read(image_data) == ""
        assert image_data.id == ""

    def test_probe_error_clears_id(self, controller, fake_cluster, image_data):
        image_data.set_id("rbd/helloImg")
        fake_cluster.unreachable.add(CEPH_ADMIN)
        assert controller.read(image_data) == ""


class TestUpdate:
    def test_always_unsupported(self, controller, image_data):
        with pytest.raises(UnsupportedOperation, match="not implemented"):
            controller.update(image_data)


class TestDelete:
    def test_deleted_image_no_longer_exists(self, controller, fake_cluster, image_data):
        fake_cluster.volumes["rbd"] = {"helloImg"}
        image_data.set_id("rbd/helloImg")
        controller.delete(image_data)
        assert fake_cluster.calls[0] == (CEPH_ADMIN, "rbd rm --no-progress rbd/helloImg")
        assert image_data.id == ""
        assert controller.exists(image_data) is False

    def test_stderr_is_an_error(self, controller, image_data):
        with pytest.raises(RemoteStderrFault, match="No such file"):
            controller.delete(image_data)

    def test_transport_fault_is_an_error(self, controller, fake_cluster, image_data):
        fake_cluster.unreachable.add(CEPH_ADMIN)
        with pytest.raises(TransportFault):
            controller.delete(image_data)


class TestExists:
    def test_propagates_probe_errors(self, controller, fake_cluster, image_data):
        fake_cluster.fail("rbd ls", stderr="rbd: error opening pool")
        with pytest.raises(RemoteStderrFault):
            controller.exists(image_data)
