from app import create_app, db
from app.models import Admin, Pick, Round, Season, Team, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "Admin": Admin,
        "User": User,
        "Season": Season,
        "Round": Round,
        "Pick": Pick,
        "Team": Team,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
