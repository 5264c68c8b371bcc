# -*- coding: utf-8 -*-
"""
统计分析模块测试
覆盖：辅助计算函数、各统计接口
"""

from datetime import date, datetime, timedelta

import pytest

from models import Message
from modules.analytics.analytics_services import (
    average_response_hours, growth_rate, last_days, quarter_ranges, round_half_up,
)
from modules.blog.blog_models import View
from tests.test_conftest import create_blog


# ==================== 辅助函数 ====================

class TestHelpers:
    """纯计算函数"""

    def test_round_half_up(self):
        assert round_half_up(2.25) == 2.3
        assert round_half_up(2.24) == 2.2
        assert round_half_up(0.05) == 0.1

    def test_growth_rate(self):
        assert growth_rate(15, 10) == 50.0
        assert growth_rate(5, 10) == -50.0
        assert growth_rate(3, 0) == 100.0
        assert growth_rate(0, 0) == 0.0

    def test_average_response_hours(self):
        base = datetime(2024, 1, 1, 8, 0)
        pairs = [
            (base, base + timedelta(hours=2)),
            (base, base + timedelta(hours=3)),
            (base, base),                           # 0 小时不计
            (base, base + timedelta(hours=200)),    # 超过一周不计
            (base, None),
        ]
        assert average_response_hours(pairs) == 2.5
        assert average_response_hours([]) == 0.0

    def test_last_days(self):
        days = last_days(3, date(2024, 3, 1))
        assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_quarter_ranges(self):
        ranges = quarter_ranges(2024)
        assert [r[0] for r in ranges] == ["Q1", "Q2", "Q3", "Q4"]
        assert ranges[1][1] == datetime(2024, 4, 1)
        assert ranges[1][2] == datetime(2024, 7, 1)
        assert ranges[3][2] == datetime(2025, 1, 1)
        assert ranges[0][3] == "#FF6B6B"


# ==================== 接口 ====================

class TestAnalyticsApi:
    """统计接口（只统计当前用户的数据）"""

    @pytest.mark.asyncio
    async def test_requires_login(self, client):
        response = await client.get("/api/v1/analytics/blog-stats")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_blog_stats(self, client, author_headers, reader_headers, category):
        blog = await create_blog(client, author_headers, category.id, title="Counted post")
        await create_blog(client, author_headers, category.id, title="Hidden draft", published=False)
        await client.get(f"/api/v1/blogs/{blog['id']}")
        await client.get(f"/api/v1/blogs/{blog['id']}")
        await client.post(f"/api/v1/likes/{blog['id']}", headers=reader_headers)

        response = await client.get("/api/v1/analytics/blog-stats", headers=author_headers)
        data = response.json()["data"]
        assert data["total_blogs"] == 2
        assert data["published_blogs"] == 1
        assert data["draft_blogs"] == 1
        assert data["total_views"] == 2
        assert data["total_likes"] == 1
        assert len(data["weekly_views"]) == 7
        assert data["weekly_views"][-1] == 2
        assert data["top_blogs"][0]["blog_id"] == blog["id"]
        assert data["top_blogs"][0]["daily_views"][-1] == 2

        other = await client.get("/api/v1/analytics/blog-stats", headers=reader_headers)
        assert other.json()["data"]["total_blogs"] == 0

    @pytest.mark.asyncio
    async def test_daily_and_detailed_views(self, client, db_session, author_headers, category):
        blog = await create_blog(client, author_headers, category.id)
        await client.get(f"/api/v1/blogs/{blog['id']}")
        # 十天前的浏览
        db_session.add(View(blog_id=blog["id"], created_at=datetime.now() - timedelta(days=10)))
        await db_session.commit()

        daily = await client.get("/api/v1/analytics/daily-views", params={"days": 7}, headers=author_headers)
        assert daily.json()["data"] == [
            {"date": date.today().isoformat(), "total_views": 1}
        ]

        wider = await client.get("/api/v1/analytics/daily-views", params={"days": 30}, headers=author_headers)
        assert len(wider.json()["data"]) == 2

        detailed = await client.get("/api/v1/analytics/detailed-views", params={"days": 30}, headers=author_headers)
        data = detailed.json()["data"]
        assert len(data) == 2
        assert data[0]["title"] == "Hello World Post"

        bad = await client.get("/api/v1/analytics/daily-views", params={"days": 0}, headers=author_headers)
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_quarterly_views(self, client, author_headers, category):
        blog = await create_blog(client, author_headers, category.id)
        await client.get(f"/api/v1/blogs/{blog['id']}")

        response = await client.get("/api/v1/analytics/quarterly-views", headers=author_headers)
        data = response.json()["data"]
        assert [q["label"] for q in data] == ["Q1", "Q2", "Q3", "Q4"]
        assert sum(q["value"] for q in data) == 1

    @pytest.mark.asyncio
    async def test_message_stats_and_performance(self, client, db_session, author, author_headers, category):
        now = datetime.now()
        db_session.add_all([
            Message(sender_email="a@example.com", sender_name="A", receiver_id=author.id,
                    subject="s", body="b", read=True,
                    created_at=now - timedelta(hours=5), updated_at=now - timedelta(hours=1)),
            Message(sender_email="b@example.com", sender_name="B", receiver_id=author.id,
                    subject="s", body="b", read=False,
                    created_at=now - timedelta(hours=2), updated_at=now - timedelta(hours=2)),
            Message(sender_email="c@example.com", sender_name="C", receiver_id=author.id,
                    subject="s", body="b", read=False,
                    created_at=now - timedelta(days=10), updated_at=now - timedelta(days=10)),
        ])
        await db_session.commit()

        response = await client.get("/api/v1/analytics/messages", headers=author_headers)
        data = response.json()["data"]
        assert data["total_messages"] == 3
        assert data["unread_messages"] == 2
        assert data["messages_this_week"] == 2
        assert len(data["messages_by_day"]) == 7
        assert data["response_time"] == 4.0

        blog = await create_blog(client, author_headers, category.id)
        await client.get(f"/api/v1/blogs/{blog['id']}")

        perf = await client.get("/api/v1/analytics/performance", headers=author_headers)
        metrics = perf.json()["data"]
        assert metrics["views_this_week"] == 1
        assert metrics["views_last_week"] == 0
        assert metrics["view_growth_rate"] == 100.0
        assert metrics["messages_this_week"] == 2
        assert metrics["messages_last_week"] == 1
        assert metrics["message_growth_rate"] == 100.0
        assert metrics["response_time"] == 4.0
