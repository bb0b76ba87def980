from diskhealth.models import CanonicalAttribute
from diskhealth.normalize.attributes import (
    ATTRIBUTE_ALIASES,
    ATTRIBUTE_CATALOG,
    AttributeKey,
    WEAR_REMAINING_KEYS,
    WEAR_USED_PRIORITY,
    cleanup_attributes,
    new_attribute_set,
    resolve_attribute_name,
)


def test_catalog_covers_every_key():
    assert set(ATTRIBUTE_CATALOG) == set(AttributeKey)


def test_aliases_and_wear_keys_are_canonical():
    for target in ATTRIBUTE_ALIASES.values():
        assert target in ATTRIBUTE_CATALOG
    assert WEAR_REMAINING_KEYS <= set(WEAR_USED_PRIORITY)


def test_resolve_is_case_insensitive():
    assert resolve_attribute_name("Reallocated_Sector_Ct") == AttributeKey.REALLOCATED_SECTOR_CT
    assert resolve_attribute_name("  MEDIA_WEAROUT_INDICATOR ") == AttributeKey.MEDIA_WEAROUT_INDICATOR


def test_resolve_aliases():
    assert resolve_attribute_name("Unexpect_Power_Loss_Ct") == AttributeKey.UNSAFE_SHUTDOWN_COUNT
    assert resolve_attribute_name("End-to-End_Error") == AttributeKey.END_TO_END_ERROR
    assert resolve_attribute_name("Power-Off_Retract_Count") == AttributeKey.POWER_OFF_RETRACT_COUNT
    assert resolve_attribute_name("Current_Drive_Temperature") == AttributeKey.TEMPERATURE_CELSIUS


def test_resolve_unknown_name_is_not_invented():
    assert resolve_attribute_name("Available_Reservd_Space") is None
    assert resolve_attribute_name("") is None


def test_new_attribute_set_is_unset():
    attributes = new_attribute_set()
    assert len(attributes) == len(ATTRIBUTE_CATALOG)
    assert all(attr.is_unset() for attr in attributes.values())
    # fresh objects each call
    attributes[AttributeKey.POWER_ON_HOURS].value = 1
    assert new_attribute_set()[AttributeKey.POWER_ON_HOURS].value is None


def test_cleanup_removes_only_fully_unset():
    attributes = {
        AttributeKey.POWER_ON_HOURS: CanonicalAttribute("Power-On Hours", "hours"),
        AttributeKey.TEMPERATURE_CELSIUS: CanonicalAttribute("Temperature", "Celsius", raw_value=0),
        AttributeKey.SEEK_ERROR_RATE: CanonicalAttribute("Seek Error Rate", "count", threshold=67),
        AttributeKey.SPIN_RETRY_COUNT: CanonicalAttribute("Spin Retry Count", "count", worst=-5),
        AttributeKey.HELIUM_LEVEL: CanonicalAttribute("Helium Level", "percent", value=-1),
    }

    result = cleanup_attributes(attributes)

    assert result is attributes
    assert AttributeKey.POWER_ON_HOURS not in attributes
    # zero and negative readings are real values
    assert set(attributes) == {
        AttributeKey.TEMPERATURE_CELSIUS,
        AttributeKey.SEEK_ERROR_RATE,
        AttributeKey.SPIN_RETRY_COUNT,
        AttributeKey.HELIUM_LEVEL,
    }
