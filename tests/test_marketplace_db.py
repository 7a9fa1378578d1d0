"""Postgres-backed checks for the marketplace stores. Skipped without DATABASE_URL."""
from core import database as store
from core.db.base import get_conn


def _company(email="hr@example.com"):
    user_id = store.create_user(email, "Passw0rd1", user_type="company")
    store.upsert_company_profile(user_id, {"company_name": "Acme"})
    return user_id


def _pro(email="pro@example.com"):
    return store.create_user(email, "Passw0rd1", user_type="professional")


def _set_job_expiry(job_id, expires_at):
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE jobs SET expires_at = ? WHERE id = ?", (expires_at, job_id))
    conn.commit()
    conn.close()


LONDON_JOB = {
    "title": "Electrician",
    "work_location": "in-person",
    "location": "London, UK",
    "latitude": 51.5074,
    "longitude": -0.1278,
    "salary_min": 30000,
    "salary_max": 40000,
    "salary_period": "per_year",
}


def test_search_jobs_by_radius_and_salary(db):
    owner = _company()
    job_id = store.create_job(owner, LONDON_JOB)
    store.create_job(owner, {**LONDON_JOB, "title": "Manchester role", "latitude": 53.48, "longitude": -2.24})

    near = store.search_jobs(lat=51.51, lng=-0.13, radius_miles=10)
    assert [j["id"] for j in near] == [job_id]
    assert near[0]["company_name"] == "Acme"

    assert store.search_jobs(lat=51.51, lng=-0.13, salary_min=15, salary_max=20, salary_period="per_hour")
    assert store.search_jobs(lat=51.51, lng=-0.13, salary_min=50000, salary_period="per_year") == []


def test_tasks_and_jobs_are_separate(db):
    homeowner = store.create_user("home@example.com", "Passw0rd1", user_type="homeowner")
    store.create_job(homeowner, LONDON_JOB, is_tradespeople_job=True)
    assert store.search_jobs(location="London") == []
    assert len(store.search_jobs(location="London", tradespeople=True)) == 1


def test_expired_jobs_are_closed_and_extendable(db):
    owner = _company()
    job_id = store.create_job(owner, LONDON_JOB)
    _set_job_expiry(job_id, "2020-01-01T00:00:00")

    result = store.process_job_expirations()
    assert result["expired_count"] == 1
    assert store.get_job(job_id)["is_active"] == 0
    assert store.search_jobs(location="London") == []

    assert store.extend_job(job_id, owner, "2_weeks") is True
    assert store.get_job(job_id)["is_active"] == 1
    assert store.extend_job(job_id, owner + 99, "2_weeks") is False


def test_expiring_job_is_notified_once(db):
    owner = _company()
    job_id = store.create_job(owner, LONDON_JOB)
    store.extend_job(job_id, owner, "3_days")

    assert store.queue_job_expiration_notifications() == 1
    assert store.queue_job_expiration_notifications() == 0

    due = store.get_due_notifications()
    assert len(due) == 1
    assert due[0]["notification_type"] == "job_expiration"
    assert due[0]["payload"]["job_id"] == job_id

    store.mark_notification_sent(due[0], "subject")
    assert store.count_pending_notifications() == 0
    assert store.list_notification_history(owner)[0]["subject"] == "subject"


def test_application_is_unique_per_professional(db):
    owner = _company()
    pro = _pro()
    job_id = store.create_job(owner, LONDON_JOB)

    assert store.create_application(job_id, pro, "Hi") is not None
    assert store.create_application(job_id, pro, "Again") is None
    assert store.get_job(job_id)["applications_count"] == 1


def test_messages_share_a_conversation(db):
    owner = _company()
    pro = _pro()
    first = store.send_message(owner, pro, "Are you free?")
    reply = store.send_message(pro, owner, "Yes", message_type="reply")
    assert first["conversation_id"] == reply["conversation_id"]
    assert store.count_unread(pro) == 1


def test_review_requires_conversation_and_second_review_edits(db):
    owner = _company()
    pro = _pro()
    assert store.can_user_review(owner, pro) is False

    store.send_message(owner, pro, "Thanks for the work")
    assert store.can_user_review(owner, pro) is True

    first = store.submit_review(owner, pro, 4, "Good, tidy work")
    second = store.submit_review(owner, pro, 2, "Came back to fix it twice")
    assert first == second
    assert store.get_review(first)["is_edited"] == 1
    assert store.get_review_stats(pro) == {"total_reviews": 1, "average_rating": 2.0}


def test_enquiry_payment_is_idempotent(db):
    owner = _company()
    pro = _pro()
    assert store.has_contact_access(owner, pro) is False

    first = store.process_enquiry_payment(owner, pro, 5, "simulated_payment", transaction_id="txn_1")
    again = store.process_enquiry_payment(owner, pro, 5, "simulated_payment", transaction_id="txn_2")
    assert first == again
    assert store.has_contact_access(owner, pro) is True
    assert store.total_payments()["count"] == 1


def test_subscription_gates_contacts(db):
    owner = _company()
    assert store.can_user_contact_professional(owner)["reason"] == "subscriptions_disabled"

    store.update_admin_settings({"subscriptions_enabled": True})
    assert store.can_user_contact_professional(owner)["reason"] == "no_subscription"
    assert store.increment_subscription_usage(owner, "contact") is False

    plan = store.get_subscription_plans("company")[0]
    store.create_user_subscription(owner, plan["id"])
    verdict = store.can_user_contact_professional(owner)
    assert verdict["can_contact"] is True
    assert verdict["contacts_limit"] == plan["contact_limit"]

    for _ in range(plan["contact_limit"]):
        assert store.increment_subscription_usage(owner, "contact") is True
    assert store.can_user_contact_professional(owner)["reason"] == "contact_limit_exceeded"


def test_homeowners_post_without_plan(db):
    store.update_admin_settings({"subscriptions_enabled": True})
    homeowner = store.create_user("home@example.com", "Passw0rd1", user_type="homeowner")
    assert store.can_user_post_job(homeowner)["can_post"] is True
    assert store.can_user_post_job(_company())["reason"] == "no_subscription"


def test_banned_user_loses_jobs_and_sessions(db):
    owner = _company()
    job_id = store.create_job(owner, LONDON_JOB)
    token = store.create_session(owner)

    store.ban_user(owner)
    assert store.get_session(token) is None
    assert store.get_job(job_id)["is_active"] == 0
    assert store.login_block_reason(store.get_user_by_id(owner)) is not None


def test_block_is_symmetric(db):
    a = _company()
    b = _pro()
    store.block_user(a, b)
    assert store.is_blocked(b, a) is True
    store.unblock_user(a, b)
    assert store.is_blocked(a, b) is False


def test_skill_and_language_filters_match_whole_entries(db):
    java = _pro("java@example.com")
    store.upsert_professional_profile(java, {"first_name": "Jo", "skills": "Java, SQL", "spoken_languages": "English"})
    js = _pro("js@example.com")
    store.upsert_professional_profile(js, {"first_name": "Sam", "skills": "JavaScript,React", "spoken_languages": "English, Welsh"})

    assert [p["user_id"] for p in store.search_professionals(skill="java")] == [java]
    assert [p["user_id"] for p in store.search_professionals(skill="React")] == [js]
    assert store.search_professionals(skill="Jav") == []
    assert [p["user_id"] for p in store.search_professionals(language=" welsh ")] == [js]

    owner = _company()
    store.upsert_company_profile(owner, {"company_name": "Acme", "spoken_languages": "Portuguese"})
    assert store.search_companies(language="Portug") == []
    assert [c["user_id"] for c in store.search_companies(language="portuguese")] == [owner]


def test_find_enquiry_payment(db):
    owner = _company()
    pro = _pro()
    assert store.find_enquiry_payment(owner, pro) is None
    payment_id = store.process_enquiry_payment(owner, pro, 0, "free")
    assert store.find_enquiry_payment(owner, pro) == payment_id
    assert store.find_enquiry_payment(pro, owner) is None


def test_saved_jobs_list_only_open_listings(db):
    owner = _company()
    pro = _pro()
    kept = store.create_job(owner, LONDON_JOB)
    lapsed = store.create_job(owner, {**LONDON_JOB, "title": "Old role"})

    assert store.save_job(pro, kept) is True
    assert store.save_job(pro, kept) is False
    assert store.save_job(pro, lapsed) is True
    assert store.is_job_saved(pro, kept)

    _set_job_expiry(lapsed, "2000-01-01T00:00:00")
    saved = store.list_saved_jobs(pro)
    assert [j["id"] for j in saved] == [kept]
    assert saved[0]["company_name"] == "Acme"

    assert store.unsave_job(pro, kept) is True
    assert store.unsave_job(pro, kept) is False
    assert not store.is_job_saved(pro, kept)


def test_cv_document_is_replaced_on_save(db):
    pro = _pro()
    assert store.get_cv(pro) is None
    first = store.save_cv(pro, {"personal_info": {"first_name": "Ada", "last_name": "Lovelace"}})
    second = store.save_cv(pro, {"personal_info": {"first_name": "Ada", "last_name": "King"}, "skills": [{"skill_name": "Maths"}]})
    assert first == second
    cv = store.get_cv(pro)
    assert cv["personal_info"]["last_name"] == "King"
    assert cv["skills"] == [{"skill_name": "Maths"}]
