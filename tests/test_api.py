from sqlalchemy.exc import OperationalError

from conftest import project_payload
from repository import BlogPostRepository, ProjectRepository, RepositoryError
from revalidation import page_cache
from schemas import BlogPostIn, ProjectIn


# ---------- Public pages ----------

def test_home_and_listing_render_fallback_data(client):
    assert client.get("/").status_code == 200
    resp = client.get("/projects")
    assert resp.status_code == 200
    assert "CubeSat Attitude Control Simulator" in resp.text
    assert "Variational Quantum Classifiers" not in resp.text


def test_listing_reads_filters_from_query_string(client):
    resp = client.get("/projects", params={"category": "Aerospace"})
    assert "CubeSat Attitude Control Simulator" in resp.text
    assert "Homeowner Loss History Prediction Project" not in resp.text
    assert 'href="/projects">Reset all filters' in resp.text


def test_empty_state_offers_reset(client):
    resp = client.get("/projects", params={"category": "Underwater Basket Weaving"})
    assert resp.status_code == 200
    assert "No projects match your filters" in resp.text
    assert "Reset all filters" in resp.text

    reset = client.get("/projects")
    assert "CubeSat Attitude Control Simulator" in reset.text
    assert "Homeowner Loss History Prediction Project" in reset.text


def test_detail_pages_and_not_found(client):
    assert client.get("/projects/cubesat-attitude-control-simulator").status_code == 200
    assert client.get("/research/variational-quantum-classifiers").status_code == 200
    resp = client.get("/projects/does-not-exist")
    assert resp.status_code == 404
    assert "Page not found" in resp.text
    assert client.get("/no/such/page").status_code == 404


def test_blog_post_counts_views(client, db):
    repo = BlogPostRepository(db)
    repo.create(BlogPostIn(title="Hello", slug="hello", excerpt="e", content="Body", published=True))
    repo.create(BlogPostIn(title="Hidden", slug="hidden", excerpt="e", content="Body"))

    assert client.get("/blog/hello").status_code == 200
    assert client.get("/blog/hello").status_code == 200
    assert client.get("/blog/hidden").status_code == 404
    db.expire_all()
    assert repo.get_by_slug("hello").view_count == 2


def test_stored_projects_hide_fallback_detail_pages(client, db):
    ProjectRepository(db, "project").create(ProjectIn.model_validate(project_payload()))
    assert client.get("/projects/alpha-rover").status_code == 200
    assert client.get("/projects/cubesat-attitude-control-simulator").status_code == 404
    assert client.get("/api/projects/cubesat-attitude-control-simulator").status_code == 404
    # research has no rows yet, so it still serves the static dataset
    assert client.get("/research/variational-quantum-classifiers").status_code == 200


def test_home_renders_when_one_section_fails(client, monkeypatch):
    def broken(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("no such table: blog_posts"))

    monkeypatch.setattr(BlogPostRepository, "list", broken)
    resp = client.get("/")
    assert resp.status_code == 200
    assert "CubeSat Attitude Control Simulator" in resp.text
    assert "/" not in page_cache


def test_blog_post_renders_when_view_count_fails(client, db, monkeypatch):
    BlogPostRepository(db).create(BlogPostIn(title="Hello", slug="hello", excerpt="e", content="Body", published=True))

    def broken(self, slug):
        raise RepositoryError("Failed to count a view")

    monkeypatch.setattr(BlogPostRepository, "increment_views", broken)
    resp = client.get("/blog/hello")
    assert resp.status_code == 200
    assert "Body" in resp.text


def test_blog_tag_pages(client, db):
    repo = BlogPostRepository(db)
    repo.create(BlogPostIn(
        title="Qubits", slug="qubits", excerpt="e", content="c", published=True, tags=["Quantum", "Python"],
    ))
    repo.create(BlogPostIn(title="Draft", slug="draft", excerpt="e", content="c", tags=["Quantum"]))
    repo.create(BlogPostIn(title="Rovers", slug="rovers", excerpt="e", content="c", published=True))

    resp = client.get("/blog/tag/quantum")
    assert resp.status_code == 200
    assert "Posts tagged with #Quantum" in resp.text
    assert "Qubits" in resp.text
    assert "Draft" not in resp.text
    assert "Rovers" not in resp.text
    assert 'href="/blog/tag/python"' in client.get("/blog/qubits").text
    assert client.get("/blog/tag/unknown").status_code == 404

    assert [p["slug"] for p in client.get("/api/blog-posts", params={"tag": "python"}).json()] == ["qubits"]
    assert sorted(t["slug"] for t in client.get("/api/blog-tags").json()) == ["python", "quantum"]


def test_public_pages_are_cached(client):
    client.get("/skills")
    assert "/skills" in page_cache


# ---------- JSON API ----------

def test_api_projects_filter_and_sort(client, db):
    repo = ProjectRepository(db, "project")
    repo.create(ProjectIn.model_validate(project_payload()))
    repo.create(ProjectIn.model_validate(project_payload(
        title="Beta Sensor", slug="beta-sensor", priority="low", is_featured=True,
    )))
    repo.create(ProjectIn.model_validate(project_payload(
        title="Gamma Alpha", slug="gamma-alpha", priority="medium",
    )))

    resp = client.get("/api/projects", params={"q": "alpha", "sort": "a-z"})
    assert [p["slug"] for p in resp.json()] == ["alpha-rover", "gamma-alpha"]

    resp = client.get("/api/projects", params={"sort": "priority-high"})
    assert [p["priority"] for p in resp.json()] == ["high", "medium", "low"]

    assert [p["slug"] for p in client.get("/api/projects/featured").json()] == ["beta-sensor"]
    assert client.get("/api/projects/gamma-alpha").json()["title"] == "Gamma Alpha"
    assert client.get("/api/projects/nope").status_code == 404


def test_api_research_by_slug(client):
    resp = client.get("/api/research-projects/slug/variational-quantum-classifiers")
    assert resp.status_code == 200
    assert resp.json()["is_ongoing"] is True
    assert resp.json()["end_date"] is None


# ---------- Admin ----------

def test_admin_pages_require_login(client):
    resp = client.get("/admin/projects", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"].startswith("/login")
    assert client.get("/api/admin/projects").status_code == 401


def test_login_form_sets_cookie(client, db):
    from auth import seed_admin

    seed_admin(db)
    bad = client.post("/login", data={"username": "admin", "password": "wrong"})
    assert bad.status_code == 401
    resp = client.post(
        "/login", data={"username": "admin", "password": "admin123", "next": "/admin"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert "access_token" in resp.cookies


def test_admin_api_crud(admin_client):
    resp = admin_client.post("/api/admin/projects", json=project_payload())
    assert resp.status_code == 201
    project = resp.json()
    assert [m["description"] for m in project["milestones"]] == ["Chassis", "Navigation"]

    resp = admin_client.put(
        f"/api/admin/projects/{project['id']}",
        json=project_payload(title="Alpha Rover II", technologies=["Go"], milestones=[]),
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Alpha Rover II"
    assert resp.json()["milestones"] == []

    assert admin_client.post("/api/admin/projects", json=project_payload()).status_code == 409
    assert admin_client.post("/api/admin/projects", json=project_payload(completion=150)).status_code == 422

    assert admin_client.delete(f"/api/admin/projects/{project['id']}").status_code == 200
    assert admin_client.get(f"/api/admin/projects/{project['id']}").status_code == 404


def test_featured_toggle_parses_booleans(admin_client):
    project = admin_client.post("/api/admin/projects", json=project_payload(is_featured=True)).json()
    url = f"/api/admin/projects/{project['id']}/featured"

    resp = admin_client.put(url, json={"featured": "false"})
    assert resp.status_code == 200
    assert resp.json()["is_featured"] is False
    assert admin_client.put(url, json={"featured": True}).json()["is_featured"] is True
    assert admin_client.put(url, json={"featured": "perhaps"}).status_code == 422
    assert admin_client.put(url, json={}).status_code == 422


def test_admin_blog_post_tags_api(admin_client):
    post = admin_client.post("/api/admin/blog-posts", json={
        "title": "Qubits", "slug": "qubits", "excerpt": "e", "content": "c", "tags": ["Quantum"],
    }).json()
    assert post["tags"] == ["Quantum"]
    url = f"/api/admin/blog-posts/{post['id']}/tags"
    assert [t["slug"] for t in admin_client.get(url).json()] == ["quantum"]

    resp = admin_client.put(url, json={"tags": ["Machine Learning", "machine learning", " "]})
    assert resp.status_code == 200
    assert [(t["name"], t["slug"]) for t in resp.json()] == [("Machine Learning", "machine-learning")]
    assert admin_client.get(f"/api/admin/blog-posts/{post['id']}").json()["tags"] == ["Machine Learning"]
    assert admin_client.get("/api/admin/blog-posts/999/tags").status_code == 404


def test_admin_blog_form_saves_tags(admin_client, db):
    resp = admin_client.post("/admin/blog/new", data={
        "title": "Tagged Post",
        "excerpt": "e",
        "content": "c",
        "tags": "Python\nQuantum\nPython",
        "action": "save",
    }, follow_redirects=False)
    assert resp.status_code == 303
    post = BlogPostRepository(db).get_by_slug("tagged-post")
    assert sorted(post.tags) == ["Python", "Quantum"]

    form = admin_client.get(f"/admin/blog/edit/{post.id}")
    assert "Python\nQuantum" in form.text or "Quantum\nPython" in form.text


def test_admin_form_create_redirects_to_listing(admin_client, db):
    page_cache["/projects"] = b"stale"
    resp = admin_client.post("/admin/projects/new", data={
        "title": "Form Made",
        "description": "Created through the editor",
        "completion": "20",
        "priority": "high",
        "start_date": "2024-05-01",
        "technologies": "Python\nJinja",
        "milestones-0-description": "Kickoff",
        "milestones-0-due_date": "2024-05-02",
        "action": "save",
    }, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/projects?notice=saved"

    stored = ProjectRepository(db, "project").get_by_slug("form-made")
    assert stored.technologies == ["Python", "Jinja"]
    assert stored.milestones[0].due_date.isoformat() == "2024-05-02"
    assert "/projects" not in page_cache


def test_admin_form_errors_rerender_with_input(admin_client):
    resp = admin_client.post("/admin/projects/new", data={
        "title": "Half Done", "description": "", "completion": "abc", "action": "save",
    })
    assert resp.status_code == 400
    assert "Completion must be a whole number" in resp.text
    assert 'value="Half Done"' in resp.text


def test_admin_generate_slug_action(admin_client):
    resp = admin_client.post("/admin/blog/new", data={
        "title": "New Post Title", "slug": "manual", "slug_manual": "1", "action": "generate-slug",
    })
    assert resp.status_code == 200
    assert 'value="new-post-title"' in resp.text


def test_admin_edit_and_delete_via_forms(admin_client, db):
    created = ProjectRepository(db, "research").create(ProjectIn.model_validate(project_payload()))
    edit = admin_client.get(f"/admin/research-projects/edit/{created.id}")
    assert edit.status_code == 200
    assert "Alpha Rover" in edit.text

    resp = admin_client.post(f"/admin/research-projects/edit/{created.id}", data={
        "title": "Alpha Rover", "slug": "alpha-rover", "slug_manual": "1", "description": "d",
        "completion": "60", "priority": "high", "is_ongoing": "on", "end_date": "2025-01-01",
        "action": "save",
    }, follow_redirects=False)
    assert resp.status_code == 303
    db.expire_all()
    stored = ProjectRepository(db, "research").get(created.id)
    assert stored.is_ongoing and stored.end_date is None
    assert stored.status == "in-progress"

    resp = admin_client.post(f"/admin/research-projects/delete/{created.id}", follow_redirects=False)
    assert resp.status_code == 303
    assert ProjectRepository(db, "research").get(created.id) is None


def test_admin_listing_keeps_filters_in_query(admin_client, db):
    repo = ProjectRepository(db, "project")
    repo.create(ProjectIn.model_validate(project_payload()))
    repo.create(ProjectIn.model_validate(project_payload(title="Beta Sensor", slug="beta-sensor")))
    resp = admin_client.get("/admin/projects", params={"q": "beta"})
    assert "Beta Sensor" in resp.text
    assert "Alpha Rover" not in resp.text
    assert 'value="beta"' in resp.text


# ---------- Revalidation & chat ----------

def test_revalidate_endpoint_checks_secret(client):
    page_cache["/blog"] = b"stale"
    assert client.post("/api/revalidate", json={"secret": "wrong", "type": "blog"}).status_code == 401
    resp = client.post("/api/revalidate", json={"secret": "test-secret", "type": "blog"})
    assert resp.json() == {"revalidated": True, "type": "blog", "evicted": 1}
    assert client.post("/api/revalidate", json={"secret": "test-secret", "type": "x"}).status_code == 400


def test_chat_endpoint_reports_provider_failure(client):
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert resp.status_code == 503
    assert resp.json() == {"error": "Failed to generate response"}


def test_chat_endpoint_returns_answer(client, monkeypatch):
    import main

    async def fake_chat(messages, context):
        return "I build rovers."

    monkeypatch.setattr(main, "chat_completion", fake_chat)
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "what do you do?"}]})
    assert resp.json() == {"response": "I build rovers."}
    assert client.post("/api/chat", json={"messages": []}).status_code == 422
