from diskhealth.enrichment.alert_classifier import AlertClassifier, Thresholds, alert_message, build_details
from diskhealth.models import CanonicalAttribute, DeviceInfo, NormalizedRecord
from diskhealth.normalize.attributes import AttributeKey as K
from diskhealth.normalize.normalizer import AttributeNormalizer


def make_record(**kwargs):
    values = dict(node_name="node-1", instance_id="cluster-a", device="/dev/sda", device_info=DeviceInfo())
    values.update(kwargs)
    return NormalizedRecord(**values)


def test_healthy_record_is_info():
    event = AlertClassifier().classify(make_record(reallocated_sectors=0, pending_sectors=0, ssd_life_used=2))

    assert event.severity == 'info'
    assert event.event_type == 'health'
    assert event.message == "SMART data collected successfully."
    assert event.details['ReallocatedSectors'] == "0"
    assert event.details['SSDWearPercentage'] == "2"


def test_reallocated_sectors_warning():
    event = AlertClassifier().classify(make_record(reallocated_sectors=15))

    assert event.severity == 'warning'
    assert event.event_type == 'health_alert'
    assert event.details['ReallocatedSectors'] == "15 (Warning: Exceeds threshold of 10)"
    assert event.message == "SMART data indicates potential drive issues (reallocated sectors)."


def test_value_equal_to_threshold_is_not_a_breach():
    event = AlertClassifier().classify(make_record(reallocated_sectors=10, pending_sectors=3,
                                                   grown_defects=10, ssd_life_used=80))
    assert event.severity == 'info'


def test_critical_wins_over_warning():
    event = AlertClassifier().classify(make_record(reallocated_sectors=24, pending_sectors=4, ssd_life_used=91))

    assert event.severity == 'critical'
    assert event.event_type == 'lifetime_alert'
    assert event.details['SSDLifeUsed'] == "91% (Warning: Exceeds threshold of 80%)"
    assert event.details['PendingSectors'] == "4 (Warning: Exceeds threshold of 3)"
    assert event.message == "SMART data indicates SSD nearing end of life."


def test_grown_defects_named_before_pending():
    event = AlertClassifier().classify(make_record(grown_defects=11, pending_sectors=5))

    assert event.severity == 'warning'
    assert event.message == "SMART data indicates potential drive issues (grown defects)."


def test_custom_thresholds():
    classifier = AlertClassifier(Thresholds(pending_sectors=0, lifetime_used=95))

    event = classifier.classify(make_record(pending_sectors=1, ssd_life_used=91))

    assert event.severity == 'warning'
    assert event.details['SSDLifeUsed'] == "91"
    assert event.message == "SMART data indicates potential drive issues (pending sectors)."


def test_details_include_unit_and_attributes():
    record = make_record(
        temperature_celsius=28,
        power_on_hours=100,
        storage_unit_id="4",
        attributes={
            K.UDMA_CRC_ERROR_COUNT: CanonicalAttribute("UDMA CRC Error Count", "count", raw_value=2),
            K.SEEK_ERROR_RATE: CanonicalAttribute("Seek Error Rate", "rate", value=100),
        },
    )

    details = build_details(record)

    assert details['TemperatureCelsius'] == "28"
    assert details['PowerOnHours'] == "100"
    assert details['StorageUnitId'] == "4"
    assert details['udma_crc_error_count'] == "2"
    assert 'seek_error_rate' not in details
    assert 'GrownDefects' not in details


def test_alert_message_ignores_plain_values():
    assert alert_message({'SSDLifeUsed': "10", 'ReallocatedSectors': "0"}) == "SMART data collected successfully."


def test_event_carries_record_identity():
    event = AlertClassifier().classify(make_record(device="/dev/sdq", node_name="n2", instance_id="c9"))

    assert (event.device, event.node_name, event.instance_id) == ("/dev/sdq", "n2", "c9")
    assert set(event.to_dict()) == {'node_name', 'instance_id', 'device', 'event_type', 'severity',
                                    'message', 'details'}


def test_reallocated_scenario_end_to_end(scenario_adapter):
    raw = scenario_adapter("reallocated").collect("sda")
    record = AttributeNormalizer().build_record(raw, "node-1", "cluster-a")

    event = AlertClassifier().classify(record)

    assert record.device_info.product == "Gold"
    assert record.temperature_celsius == 39
    assert event.severity == 'warning'
    assert event.event_type == 'health_alert'
    assert event.details['ReallocatedSectors'] == "15 (Warning: Exceeds threshold of 10)"


def test_worn_ssd_scenario_end_to_end(scenario_adapter):
    raw = scenario_adapter("worn_ssd").collect("sda")
    event = AlertClassifier().classify(AttributeNormalizer().build_record(raw, "node-1", "cluster-a"))

    assert event.severity == 'critical'
    assert event.event_type == 'lifetime_alert'
    assert event.message == "SMART data indicates SSD nearing end of life."
