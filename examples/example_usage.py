from datetime import date

from umamibigquery import UmamiBigQuery, WarehouseConfig

WEBSITE_ID = "00000000-0000-0000-0000-000000000000"

config = WarehouseConfig.from_env()
ga = UmamiBigQuery(config)

steps = [
    {"type": "url", "value": "/"},
    {"type": "url", "value": "/skjema/*"},
    {"type": "event", "value": "skjema fullfort", "eventScope": "current-path"},
]
funnel = ga.request_funnel(
    website_id=WEBSITE_ID,
    start_date=date(2024, 11, 1),
    end_date=date(2024, 11, 7),
    steps=steps,
    only_direct_entry=False,
    user_ident="A123456",
)
print(funnel.to_dataframe())
print(funnel.query_stats)

timing = ga.request_funnel_timing(
    website_id=WEBSITE_ID,
    start_date=date(2024, 11, 1),
    end_date=date(2024, 11, 7),
    urls=["/", "/skjema/*"],
    only_direct_entry=False,
)
print(timing.to_dataframe())

journeys = ga.request_journeys(
    website_id=WEBSITE_ID,
    start_url="/",
    start_date=date(2024, 11, 1),
    end_date=date(2024, 11, 7),
    steps=3,
    limit=15,
)
print(journeys.to_dict())
