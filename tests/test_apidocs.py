"""Documentation Swagger générée par flasgger."""


def test_route_summaries_are_in_french(client):
    response = client.get("/apispec_1.json")

    assert response.status_code == 200
    paths = response.json["paths"]
    assert paths["/api/appointments"]["post"]["summary"] == "Créer un rendez-vous"
    assert paths["/api/users"]["post"]["summary"] == "Créer un utilisateur"
    assert paths["/api/planning"]["post"]["summary"] == "Créer un créneau de planning"
