from nanoedit import create_app

app = create_app()
celery = app.celery_app

# Project metadata
app.title = "Nano Banana Image Editing API"
app.description = (
    "Asynchronous AI image editing: submit a job, poll its status, "
    "pay in credits"
)
app.version = "1.0.0"
