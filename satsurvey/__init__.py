"""Satellite Sensor Survey — dual-backend satellite inventory engine.

Quickstart::

    from satsurvey.config import SurveyConfig
    from satsurvey.facade import SurveyFacade

    facade = SurveyFacade.from_config(SurveyConfig.from_env())
    await facade.start()
    result = await facade.create({"Title": "Landsat 9", "NORAD_ID": "49260"})
"""

__version__ = "5.5.4"
