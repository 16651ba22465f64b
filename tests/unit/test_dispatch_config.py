from app.db import crud
from app.schemas import DispatchConfigUpdate
from app.services.dispatch_config import load_dispatch_config, save_dispatch_config
from app.services.templates import DEFAULT_DISPATCH_TEMPLATE
from tests.conftest import SENDER


async def test_defaults_when_nothing_stored(db):
    config = await load_dispatch_config(db)
    assert config.dispatch_template == DEFAULT_DISPATCH_TEMPLATE
    assert config.whatsapp_number == ""
    assert config.max_retries == 3


async def test_saved_values_round_trip_through_storage(db):
    config = await save_dispatch_config(db, DispatchConfigUpdate(
        response_timeout=45, auto_escalate=False, max_retries=2,
    ))
    assert (config.response_timeout, config.auto_escalate, config.max_retries) == (45, False, 2)
    stored = await crud.get_config_map(db)
    assert stored["dispatch_auto_escalate"] == "false"


async def test_out_of_range_value_only_drops_that_key(db):
    template = "Job at {property_address}: {issue_title}"
    await save_dispatch_config(db, DispatchConfigUpdate(whatsapp_number=SENDER, dispatch_template=template))
    await crud.set_config_values(db, {"dispatch_max_retries": "9"})

    config = await load_dispatch_config(db)
    assert config.whatsapp_number == SENDER
    assert config.dispatch_template == template
    assert config.max_retries == 3


async def test_unparseable_and_invalid_values_fall_back_per_key(db):
    await crud.set_config_values(db, {
        "whatsapp_number": "5125550000",
        "dispatch_response_timeout": "soon",
        "dispatch_auto_escalate": "false",
    })
    config = await load_dispatch_config(db)
    assert config.whatsapp_number == ""
    assert config.response_timeout == 30
    assert config.auto_escalate is False
