from models.manifest import ManifestStatus, ScanSource
from models.shipment import ShipmentStatus
from services.scan_service import ScanService
from services.shipment_service import ShipmentService

from conftest import ORG_ID, OTHER_ORG_ID, USER_ID


def awbs(shipments):
    return {shipment.awb_number for shipment in shipments}


def test_list_available_at_origin(db_session, hubs, make_manifest, make_shipment):
    make_shipment("607-81000001")
    make_shipment("607-81000002", destination="BOM")
    make_shipment("607-81000003", status=ShipmentStatus.EXCEPTION)
    make_shipment("607-81000004", status=ShipmentStatus.DELIVERED)
    claimed = make_shipment("607-81000005")
    released = make_shipment("607-81000006")

    open_manifest = make_manifest()
    ScanService.ingest_scan(ORG_ID, open_manifest.id, claimed.awb_number, USER_ID, ScanSource.MANUAL, db_session)
    arrived_manifest = make_manifest()
    ScanService.ingest_scan(ORG_ID, arrived_manifest.id, released.awb_number, USER_ID, ScanSource.MANUAL, db_session)
    arrived_manifest.status = ManifestStatus.ARRIVED
    db_session.commit()

    origin = hubs["BLR"].id
    ready_for_del = ShipmentService.list_available(ORG_ID, origin, db_session, destination_hub_id=hubs["DEL"].id)
    assert awbs(ready_for_del) == {"607-81000001"}

    ready_anywhere = ShipmentService.list_available(ORG_ID, origin, db_session)
    assert awbs(ready_anywhere) == {"607-81000001", "607-81000002"}

    any_status = ShipmentService.list_available(
        ORG_ID, origin, db_session, destination_hub_id=hubs["DEL"].id, only_ready=False
    )
    assert awbs(any_status) == {"607-81000001", "607-81000003", "607-81000006"}


def test_list_available_is_scoped_to_hub_and_org(db_session, hubs, make_shipment):
    make_shipment("607-81000010")

    assert ShipmentService.list_available(ORG_ID, hubs["DEL"].id, db_session) == []
    assert ShipmentService.list_available(OTHER_ORG_ID, hubs["BLR"].id, db_session) == []


def test_available_shipment_leaves_the_list_once_scanned(db_session, hubs, make_manifest, make_shipment):
    shipment = make_shipment("607-81000011")
    manifest = make_manifest()
    assert awbs(ShipmentService.list_available(ORG_ID, hubs["BLR"].id, db_session)) == {shipment.awb_number}

    ScanService.ingest_scan(ORG_ID, manifest.id, shipment.awb_number, USER_ID, ScanSource.MANUAL, db_session)
    assert ShipmentService.list_available(ORG_ID, hubs["BLR"].id, db_session) == []

    ScanService.remove_shipment(ORG_ID, str(manifest.id), str(shipment.id), USER_ID, db_session)
    assert awbs(ShipmentService.list_available(ORG_ID, hubs["BLR"].id, db_session)) == {shipment.awb_number}
