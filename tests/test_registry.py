from jobfeed.registry import DEFAULT_ENDPOINTS, Endpoint, EndpointRegistry, infer_source


def test_catalogue_lists_every_endpoint():
    reg = EndpointRegistry()
    eps = reg.endpoints()
    assert len(eps) == len(DEFAULT_ENDPOINTS) == 9
    assert all(e.url.startswith("https://") for e in eps)
    assert len({e.name for e in eps}) == len(eps)


def test_sources_and_counts():
    reg = EndpointRegistry()
    assert reg.sources() == ["jobicy", "higheredjobs"]
    assert reg.counts_by_source() == {"jobicy": 8, "higheredjobs": 1}


def test_categories_parsed_from_urls():
    cats = EndpointRegistry().categories()
    assert cats == ["smm", "seller", "design-multimedia", "data-science", "copywriting", "business", "management"]


def test_filters():
    reg = EndpointRegistry()
    assert [e.name for e in reg.for_source("higheredjobs")] == ["higher-ed-jobs"]
    assert [e.name for e in reg.for_category("design")] == ["jobicy-design"]
    assert reg.for_source("nope") == []


def test_infer_source():
    assert infer_source("https://jobicy.com/?feed=job_feed&job_categories=x") == "jobicy"
    assert infer_source("https://WWW.HigherEdJobs.com/rss/foo.cfm") == "higheredjobs"
    assert infer_source("https://example.com/?feed=job_feed") == "other"


def test_resolve_known_and_ad_hoc():
    reg = EndpointRegistry()
    known = reg.resolve("https://www.higheredjobs.com/rss/articleFeed.cfm")
    assert known.name == "higher-ed-jobs"

    ad_hoc = reg.resolve("https://example.com/?feed=job_feed")
    assert ad_hoc == Endpoint(name="other", url="https://example.com/?feed=job_feed", source="other")


def test_to_dict_shape():
    d = EndpointRegistry().endpoints()[0].to_dict()
    assert set(d) == {"name", "url", "source", "description"}
