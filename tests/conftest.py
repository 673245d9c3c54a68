import pytest

from config import ReviewConfig
from registry import build_default_registry

REACT_COMPONENT = """\
import React, { useEffect, useState } from 'react';
import _ from 'lodash';

export function SearchResults(props: any) {
  const [items, setItems] = useState([]);
  const query = new URLSearchParams(location.search).get('q');

  useEffect(() => {
    console.log('loading', query);
    fetch('/api/search?q=' + query).then((r) => r.json()).then(setItems);
  });

  document.getElementById('title').innerHTML = query;

  return (
    <div style={{ color: 'red' }} onClick={() => setItems([])}>
      <img src="/logo.png" />
      <a href="https://example.com" target="_blank">Docs</a>
      {items.map((item) => (
        <span>{item.name}</span>
      ))}
    </div>
  );
}
"""


@pytest.fixture
def config() -> ReviewConfig:
    """Default review options, independent of the environment."""
    return ReviewConfig()


@pytest.fixture
def registry(config):
    return build_default_registry(config)


@pytest.fixture
def react_source() -> str:
    return REACT_COMPONENT
